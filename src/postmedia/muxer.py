# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Video + audio remuxing with a content-addressed file cache.

The cache key is the MD5 of the *post* URL, not of the stream URLs (those
carry per-session signatures and change on every capture).  The merged file
is the only persisted record: if ``<key>_merged.mp4`` exists it is returned
without any download.

Concurrency: identical requests inside one process share a single in-flight
task per cache key.  Output is written to a temporary name and renamed into
place, so a half-written file is never served as a cache hit.  Nothing
coordinates separate processes sharing the same directory.
"""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import logging
import os
import time
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

import httpx

from .errors import MuxError
from .fetcher import DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024
_DOWNLOAD_TIMEOUT = 120.0
_REMUX_TIMEOUT = 300.0
_STDERR_TAIL = 500


class MergeState(StrEnum):
    NOT_STARTED = "not-started"
    DOWNLOADING = "downloading"
    MERGING = "merging"
    DONE = "done"
    FAILED = "failed"


@dataclass
class MergeJob:
    cache_key: str
    video_path: Path
    audio_path: Path
    output_path: Path
    state: MergeState = MergeState.NOT_STARTED

    @property
    def partial_path(self) -> Path:
        return self.output_path.with_name(f"{self.cache_key}_merged.tmp.mp4")

    def scratch_paths(self) -> tuple[Path, ...]:
        return (self.video_path, self.audio_path, self.partial_path, self.output_path)


def cache_key_for(post_url: str) -> str:
    return hashlib.md5(post_url.encode("utf-8"), usedforsecurity=False).hexdigest()


def ffmpeg_args(ffmpeg: str, job: MergeJob) -> list[str]:
    """Copy the video stream untouched, transcode audio to AAC."""
    return [
        ffmpeg,
        "-hide_banner",
        "-loglevel",
        "error",
        "-y",
        "-i",
        str(job.video_path),
        "-i",
        str(job.audio_path),
        "-map",
        "0:v:0",
        "-map",
        "1:a:0",
        "-c:v",
        "copy",
        "-c:a",
        "aac",
        "-movflags",
        "+faststart",
        str(job.partial_path),
    ]


def _unlink_quietly(*paths: Path) -> None:
    for p in paths:
        try:
            p.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Cleanup failed for %s: %s", p.name, e)


class MediaMuxer:
    """Downloads separate streams and merges them into ``cache_dir``."""

    def __init__(
        self,
        cache_dir: Path,
        *,
        public_base_url: str = "",
        ffmpeg_path: str = "ffmpeg",
        client: httpx.AsyncClient | None = None,
        remux_timeout: float = _REMUX_TIMEOUT,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/")
        self.ffmpeg_path = ffmpeg_path
        self.remux_timeout = remux_timeout
        self._client = client or httpx.AsyncClient(
            headers={"User-Agent": DEFAULT_USER_AGENT},
            follow_redirects=True,
            timeout=_DOWNLOAD_TIMEOUT,
        )
        self._inflight: dict[str, asyncio.Future[Path]] = {}

    def job_for(self, post_url: str) -> MergeJob:
        key = cache_key_for(post_url)
        return MergeJob(
            cache_key=key,
            video_path=self.cache_dir / f"{key}_video.mp4",
            audio_path=self.cache_dir / f"{key}_audio.mp4",
            output_path=self.cache_dir / f"{key}_merged.mp4",
        )

    def public_url(self, output_path: Path) -> str:
        """Externally reachable link for a merged file."""
        return f"{self.public_base_url}/{output_path.name}"

    async def merge(self, video_url: str, audio_url: str, post_url: str) -> Path:
        """Return the merged file for *post_url*, building it if not cached.

        Raises:
            MuxError: download or ffmpeg failed; scratch files are removed.
        """
        job = self.job_for(post_url)
        if job.output_path.exists():
            job.state = MergeState.DONE
            logger.info("Using cached merged video %s", job.output_path.name)
            return job.output_path

        task = self._inflight.get(job.cache_key)
        if task is None:
            task = asyncio.ensure_future(self._run(job, video_url, audio_url))
            self._inflight[job.cache_key] = task
            task.add_done_callback(lambda _t, key=job.cache_key: self._inflight.pop(key, None))
        else:
            logger.info("Joining in-flight merge for %s", job.cache_key)
        return await asyncio.shield(task)

    async def _run(self, job: MergeJob, video_url: str, audio_url: str) -> Path:
        try:
            job.state = MergeState.DOWNLOADING
            logger.info("Downloading video stream")
            await self._download(video_url, job.video_path)
            logger.info("Downloading audio stream")
            await self._download(audio_url, job.audio_path)

            job.state = MergeState.MERGING
            logger.info("Merging video and audio with ffmpeg")
            await self._remux(job)
            os.replace(job.partial_path, job.output_path)
        except asyncio.CancelledError:
            job.state = MergeState.FAILED
            _unlink_quietly(*job.scratch_paths())
            raise
        except Exception as e:
            job.state = MergeState.FAILED
            _unlink_quietly(*job.scratch_paths())
            logger.warning("Merge failed for %s: %s", job.cache_key, e)
            if isinstance(e, MuxError):
                raise
            raise MuxError(f"Merge failed: {e}") from e

        job.state = MergeState.DONE
        _unlink_quietly(job.video_path, job.audio_path)
        logger.info("Merge completed: %s", job.output_path.name)
        return job.output_path

    async def _download(self, url: str, dest: Path) -> None:
        async with self._client.stream("GET", url) as resp:
            resp.raise_for_status()
            with dest.open("wb") as fh:
                async for chunk in resp.aiter_bytes(_CHUNK_SIZE):
                    fh.write(chunk)

    async def _remux(self, job: MergeJob) -> None:
        try:
            proc = await asyncio.create_subprocess_exec(
                *ffmpeg_args(self.ffmpeg_path, job),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise MuxError(f"ffmpeg not found at '{self.ffmpeg_path}'") from e

        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.remux_timeout)
        except TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
            raise MuxError(f"ffmpeg timed out after {self.remux_timeout:g}s") from None

        if proc.returncode != 0:
            tail = (stderr or b"").decode(errors="replace")[-_STDERR_TAIL:]
            raise MuxError(f"ffmpeg exited with {proc.returncode}: {tail}", returncode=proc.returncode)

    def purge(self, max_age_seconds: float) -> int:
        """Delete merged outputs older than *max_age_seconds*.  Returns count removed."""
        cutoff = time.time() - max_age_seconds
        removed = 0
        for path in self.cache_dir.glob("*_merged.mp4"):
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed += 1
            except OSError as e:
                logger.warning("Purge failed for %s: %s", path.name, e)
        if removed:
            logger.info("Purged %d merged file(s) older than %.0fs", removed, max_age_seconds)
        return removed

    async def aclose(self) -> None:
        await self._client.aclose()
