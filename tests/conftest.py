"""Pytest configuration and shared fixtures.

Everything runs against file stores in tmp_path, fake collaborators and a
fake encoder script: no network, no ffmpeg, no Postgres.
"""

import json
import os
import random
import stat
import tempfile
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# backend.main reads settings at import; keep its data dir out of the project tree
os.environ.setdefault("REELPIPE_DATA_DIR", tempfile.mkdtemp(prefix="reelpipe-test-"))

from reelpipe.catalog import load_catalog
from reelpipe.config import Settings
from reelpipe.formats.rules import FormatRules
from reelpipe.generation.service import ContentGenerator
from reelpipe.jobs.models import Job, JobStatus
from reelpipe.jobs.store import FileJobStore, new_job_id
from reelpipe.media.encoder import Encoder
from reelpipe.media.storage import LocalStorage
from reelpipe.pipeline.context import PipelineContext
from reelpipe.publish.playlists import PlaylistManager
from reelpipe.publish.youtube import Collection
from reelpipe.render import RenderError, RenderedFrames
from reelpipe.schedule import ScheduleBook
from reelpipe.tenants.models import Branding, Tenant
from reelpipe.tenants.registry import TenantRegistry
from reelpipe.tenants.repository import FileTenantRepository
from reelpipe.tenants.vault import FernetVault

PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"

VAULT_KEY = FernetVault.generate_key()

MCQ_RESPONSE = {
    "hook": "Can you pick the right word?",
    "question": "Which word means 'very happy'?",
    "options": {"A": "Elated", "B": "Gloomy", "C": "Tired", "D": "Bored"},
    "answer": "A",
    "explanation": "Elated means extremely happy and excited.",
    "cta": "Follow for daily words!",
}


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeClock:
    """Mutable UTC clock for stores and stages."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeLLM:
    """Returns canned responses; a list is consumed in order, the last one repeats."""

    def __init__(self, responses=None):
        if responses is None:
            responses = [json.dumps(MCQ_RESPONSE)]
        self.responses = list(responses) if isinstance(responses, list) else [responses]
        self.prompts: list[str] = []
        self._lock = threading.Lock()

    def complete(self, prompt: str, **kwargs) -> str:
        with self._lock:
            self.prompts.append(prompt)
            response = self.responses[min(len(self.prompts), len(self.responses)) - 1]
        if isinstance(response, Exception):
            raise response
        return response


class FakeRenderer:
    """Writes one small PNG per frame spec into storage and returns their URLs."""

    def __init__(self, storage: LocalStorage):
        self.storage = storage
        self.calls: list[str] = []
        self.fail_hooks: set[str] = set()

    def render(self, job_id, content, content_format, branding=None) -> RenderedFrames:
        self.calls.append(job_id)
        if content.get("hook") in self.fail_hooks:
            raise RenderError("renderer unavailable")
        urls = [
            self.storage.put(b"\x89PNG fake " + role.encode(), f"quiz-frames/{job_id}_{i}.png")
            for i, role in enumerate(content_format.frame_roles)
        ]
        return RenderedFrames(urls=urls, theme_name="midnight")


class FakePlatform:
    def __init__(self):
        self.uploads: list[tuple[Path, object]] = []
        self.uploaded_bytes: list[bytes] = []
        self.collections: list[Collection] = []
        self.added: list[tuple[str, str]] = []
        self.thumbnails: list[str] = []
        self.list_calls = 0
        self.fail_upload: Exception | None = None
        self.fail_playlist_add: Exception | None = None

    def upload(self, path: Path, metadata) -> str:
        if self.fail_upload is not None:
            raise self.fail_upload
        self.uploads.append((path, metadata))
        self.uploaded_bytes.append(Path(path).read_bytes())
        return f"yt_{len(self.uploads)}"

    def set_thumbnail(self, video_id: str, image: bytes, mime_type: str = "image/png") -> None:
        self.thumbnails.append(video_id)

    def list_collections(self) -> list[Collection]:
        self.list_calls += 1
        return list(self.collections)

    def create_collection(self, title: str, description: str, privacy: str = "public") -> str:
        collection = Collection(id=f"PL{len(self.collections) + 1}", title=title, description=description)
        self.collections.append(collection)
        return collection.id

    def add_to_collection(self, video_id: str, collection_id: str) -> None:
        if self.fail_playlist_add is not None:
            raise self.fail_playlist_add
        self.added.append((video_id, collection_id))


def write_script(path: Path, body: str) -> Path:
    path.write_text("#!/bin/sh\n" + body + "\n", encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IEXEC | stat.S_IXGRP | stat.S_IXOTH)
    return path


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    s = Settings(
        reelpipe_data_dir=str(tmp_path / "data"),
        reelpipe_work_dir=str(tmp_path / "work"),
        reelpipe_audio_dir=str(tmp_path / "audio"),
        reelpipe_vault_key=VAULT_KEY,
        reelpipe_cron_secret="cron-secret",
        reelpipe_database_url=None,
        reelpipe_encoder_timeout=5.0,
        reelpipe_respect_schedule=False,
    )
    s.ensure_dirs()
    return s


@pytest.fixture
def store(settings, clock):
    return FileJobStore(settings.data_dir, clock=clock)


@pytest.fixture
def storage(settings):
    return LocalStorage(settings.storage_dir)


@pytest.fixture
def tenant_repo(settings):
    repo = FileTenantRepository(settings.data_dir)
    vault = FernetVault(repo, VAULT_KEY)
    secrets = {
        "google_client_id": "client-id",
        "google_client_secret": "client-secret",
        "refresh_token": "refresh-token",
    }
    repo.save(
        Tenant(
            id="english_shots",
            name="English Shots",
            personas=["english_vocab_builder"],
            branding=Branding(channel_name="English Shots", hashtags=["LearnEnglish"]),
            encrypted={k: vault.encrypt(v) for k, v in secrets.items()},
        )
    )
    repo.save(
        Tenant(
            id="health_shots",
            name="Health Shots",
            personas=["brain_health_tips", "eye_health_tips"],
        )
    )
    return repo


@pytest.fixture
def tenants(tenant_repo):
    return TenantRegistry(tenant_repo, FernetVault(tenant_repo, VAULT_KEY), cache_ttl=300)


@pytest.fixture
def fake_ffmpeg(tmp_path):
    """Encoder stand-in that writes a few bytes to its last argument."""
    return write_script(
        tmp_path / "fake-ffmpeg",
        'for last; do :; done\nprintf "fake-mp4-data" > "$last"',
    )


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
def ctx(settings, store, tenants, storage, fake_ffmpeg, llm, platform, clock):
    return PipelineContext(
        settings=settings,
        store=store,
        tenants=tenants,
        catalog=load_catalog(CONFIG_DIR / "personas.yaml"),
        format_rules=FormatRules(),
        schedules=ScheduleBook({}),
        renderer=FakeRenderer(storage),
        encoder=Encoder(str(fake_ffmpeg), timeout=5.0),
        playlists=PlaylistManager(cache_ttl=300),
        storage_factory=lambda tenant_id: storage,
        platform_factory=lambda tenant_id: platform,
        generator=ContentGenerator(llm),
        clock=clock,
        rng=random.Random(7),
    )


@pytest.fixture
def make_job(store, clock):
    """Create a job directly in the store; each call is one second newer."""

    def _make(step=2, status=None, payload=None, tenant_id="english_shots", **fields):
        clock.advance(1)
        job = Job(
            id=new_job_id(),
            tenant_id=tenant_id,
            persona=fields.pop("persona", "english_vocab_builder"),
            topic=fields.pop("topic", "eng_vocab_synonyms"),
            step=step,
            status=status or {1: JobStatus.PENDING, 2: JobStatus.FRAMES_PENDING,
                              3: JobStatus.ASSEMBLY_PENDING, 4: JobStatus.UPLOAD_PENDING}[step],
            payload=payload if payload is not None else {},
            created_at=clock.now,
            updated_at=clock.now,
            **fields,
        )
        return store.create(job)

    return _make


@pytest.fixture
def config_dir():
    return CONFIG_DIR


@pytest.fixture
def make_script(tmp_path):
    """Write an executable shell script into tmp_path and return its path."""

    def _make(name: str, body: str) -> Path:
        return write_script(tmp_path / name, body)

    return _make


@pytest.fixture
def vault_key():
    return VAULT_KEY
