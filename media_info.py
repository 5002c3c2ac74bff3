import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import List, Union

logger = logging.getLogger(__name__)

STATUS_PLAYING = "playing"
STATUS_NONE = "none"
STATUS_ERROR = "error"


@dataclass(frozen=True)
class MediaInfo:
    status: str
    title: str = ""
    artist: str = ""
    playback_status: str = ""
    error: str = ""

    @property
    def label(self) -> str:
        if self.status != STATUS_PLAYING:
            return ""
        return f"{self.title} · {self.artist}" if self.artist else self.title


def parse_media_output(text: str) -> MediaInfo:
    """
    Parses the helper's stdout, one of:

      TITLE:<title>
      ARTIST:<artist>
      STATUS:<Playing|Paused|...>

    or a single NONE line, or ERROR:<message>.
    """
    fields = {}
    for raw in (text or "").splitlines():
        line = raw.strip()
        if not line:
            continue
        if line == "NONE":
            return MediaInfo(STATUS_NONE)
        if line.startswith("ERROR:"):
            return MediaInfo(STATUS_ERROR, error=line[len("ERROR:"):].strip())
        key, sep, value = line.partition(":")
        if sep:
            fields[key.strip().upper()] = value.strip()

    if "TITLE" not in fields:
        return MediaInfo(STATUS_ERROR, error="Unrecognised media helper output")

    return MediaInfo(
        STATUS_PLAYING,
        title=fields.get("TITLE", ""),
        artist=fields.get("ARTIST", ""),
        playback_status=fields.get("STATUS", ""),
    )


def query_media_session(command: Union[str, List[str], None], timeout: float = 5.0) -> MediaInfo:
    """Runs the media-session helper once. Never raises; failures become an error outcome."""
    if not command:
        return MediaInfo(STATUS_NONE)

    args = shlex.split(command, posix=os.name != "nt") if isinstance(command, str) else list(command)
    try:
        proc = subprocess.run(args, capture_output=True, text=True, timeout=timeout, check=False)
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning("Media helper %s failed: %s", args[0], e)
        return MediaInfo(STATUS_ERROR, error=str(e))

    if proc.returncode != 0:
        msg = (proc.stderr or "").strip() or f"exit status {proc.returncode}"
        logger.warning("Media helper %s failed: %s", args[0], msg)
        return MediaInfo(STATUS_ERROR, error=msg)

    return parse_media_output(proc.stdout)

