from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000
DEBOUNCE_DELAY = 0.1
WS_PATH = "/live-server-ws"

RELOAD_SCRIPT = """
<script>
(function () {{
  const ws = new WebSocket("ws://{host}:{port}{path}");
  ws.onopen = () => console.log("[Live Server] Connection established");
  ws.onmessage = () => location.reload();
  ws.onclose = () => console.log("[Live Server] Connection closed");
}})();
</script>
"""


class StartupError(Exception):
    """Fatal error raised before the server starts accepting requests."""


def render_script(host, port):
    return RELOAD_SCRIPT.format(host=host, port=port, path=WS_PATH)


def resolve_root(path) -> Path:
    """Canonicalize the directory to serve and watch."""
    try:
        root = Path(path).resolve(strict=True)
    except (OSError, RuntimeError) as err:
        raise StartupError(f"Failed to get absolute path of `{path}`: {err}") from err
    if not root.is_dir():
        raise StartupError(f"`{root}` is not a directory")
    return root


@dataclass(frozen=True)
class ServerConfig:
    host: str
    port: int
    root: Path
    debounce: float = DEBOUNCE_DELAY
    script: str = field(init=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, "script", render_script(self.host, self.port))

    @property
    def url(self):
        return f"http://{self.host}:{self.port}/"
