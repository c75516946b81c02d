import asyncio
import os
import time
from typing import List, Optional

from clipdrop.core.config import settings
from clipdrop.core.logging import log

BROWSER_UA = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36'
TIKTOK_REFERER = 'https://www.tiktok.com/'

# Files yt-dlp may leave behind for an unfinished download
PARTIAL_SUFFIXES = ('', '.part', '.ytdl')


class ProcessError(Exception):
    """The downloader exited non-zero or could not be started."""

    def __init__(self, message: str, returncode: Optional[int] = None, output: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.output = output


class DownloadTimeout(Exception):
    """The client-visible wait for a download ran out."""


class VideoDownloader:
    def __init__(self, download_dir: str = None, binary: str = None, max_concurrent: int = None):
        self.download_dir = download_dir or settings.DOWNLOAD_PATH
        self.binary = binary or settings.DOWNLOADER_BIN
        self.max_concurrent = max_concurrent or settings.MAX_CONCURRENT_DOWNLOADS
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._last_stamp = 0

    @property
    def semaphore(self) -> asyncio.Semaphore:
        # Created lazily so it binds to the loop that serves requests
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_concurrent)
        return self._semaphore

    def next_filename(self) -> str:
        """Returns ``video_<unixMillis>.mp4``, never repeating a stamp.

        Two calls in the same millisecond get consecutive stamps; a stamp whose
        file already exists on disk is skipped as well.
        """
        stamp = max(int(time.time() * 1000), self._last_stamp + 1)
        while os.path.exists(os.path.join(self.download_dir, f"video_{stamp}.mp4")):
            stamp += 1
        self._last_stamp = stamp
        return f"video_{stamp}.mp4"

    def build_command(self, url: str, output_path: str, is_tiktok: bool) -> List[str]:
        cmd = [
            self.binary,
            '-f', 'best',
            '--recode-video', 'mp4',
            '--no-check-certificate',
        ]
        if is_tiktok:
            cmd += [
                '--add-header', f'User-Agent:{BROWSER_UA}',
                '--add-header', f'Referer:{TIKTOK_REFERER}',
            ]
        # "--" keeps a URL starting with "-" from being read as an option
        cmd += ['-o', output_path, '--', url]
        return cmd

    async def download(self, url: str, is_tiktok: bool) -> str:
        """Runs the downloader for ``url`` and returns the produced file path.

        Cancelling the awaiting task kills the child process and removes any
        partial output.
        """
        async with self.semaphore:
            filename = self.next_filename()
            output_path = os.path.join(self.download_dir, filename)
            cmd = self.build_command(url, output_path, is_tiktok)
            log.info("[*] Downloading %s -> %s", url, output_path)

            try:
                proc = await asyncio.create_subprocess_exec(
                    *cmd,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                raise ProcessError(f"Failed to start {self.binary}: {e}", output=str(e)) from e

            try:
                stdout, stderr = await proc.communicate()
            except asyncio.CancelledError:
                await self._kill(proc)
                self._remove_partial(output_path)
                log.warning("[-] Download cancelled, child %s killed: %s", proc.pid, url)
                raise

            if proc.returncode != 0:
                output = (stderr or stdout or b"").decode(errors="replace").strip()
                self._remove_partial(output_path)
                raise ProcessError(
                    f"Command failed with exit code {proc.returncode}: {output}",
                    returncode=proc.returncode,
                    output=output,
                )

            log.info("[+] Download finished: %s", output_path)
            return output_path

    async def _kill(self, proc):
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()

    def _remove_partial(self, output_path: str):
        for suffix in PARTIAL_SUFFIXES:
            try:
                os.remove(output_path + suffix)
            except FileNotFoundError:
                pass
            except OSError as e:
                log.warning("[-] Could not remove %s: %s", output_path + suffix, e)


downloader = VideoDownloader()
