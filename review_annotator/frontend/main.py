"""
Command-line launcher for the review annotator.

Starts the HTTP API, the Streamlit UI, or both:

```
review-annotator [server|ui|both]
```

``both`` (the default) runs the API in a daemon thread, waits until its
``/health`` endpoint answers and then starts the UI in a child process.
``REVIEW_API_HOST``, ``REVIEW_API_PORT`` and ``REVIEW_UI_PORT`` choose
the addresses; ``LOG_LEVEL`` sets the root log level.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import threading
import time
import urllib.error
import urllib.request
from pathlib import Path
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

COMMANDS = ('server', 'ui', 'both')
USAGE = "Usage: review-annotator [server|ui|both]"


def run_server() -> None:
    """Start the HTTP API in the current thread."""
    from review_annotator.backend import api_server
    api_server.run()


def ui_command(port: Optional[str] = None) -> List[str]:
    """Build the command line that launches the Streamlit UI."""
    return [
        sys.executable, '-m', 'streamlit', 'run', str(Path(__file__).parent / 'app.py'),
        '--server.port', port or os.getenv('REVIEW_UI_PORT', '8000'),
        '--server.address', '0.0.0.0',
    ]


def run_ui() -> int:
    """Run the Streamlit UI in a child process and return its exit code."""
    return subprocess.run(ui_command()).returncode


def health_url() -> str:
    host = os.getenv('REVIEW_API_HOST', '0.0.0.0')
    # a wildcard bind address is reached through loopback
    if host in ('0.0.0.0', '::'):
        host = '127.0.0.1'
    return f"http://{host}:{os.getenv('REVIEW_API_PORT', '8001')}/health"


def wait_for_server(url: str, timeout: float = 15.0, interval: float = 0.25) -> bool:
    """Poll ``url`` until it answers 200 or ``timeout`` seconds pass."""
    deadline = time.monotonic() + timeout
    while True:
        try:
            with urllib.request.urlopen(url, timeout=interval) as response:
                if response.status == 200:
                    return True
        except (urllib.error.URLError, OSError):
            pass
        if time.monotonic() >= deadline:
            return False
        time.sleep(interval)


def run_both() -> int:
    """Start the API in a background thread, then the UI once the API is up."""
    threading.Thread(target=run_server, daemon=True).start()
    url = health_url()
    if not wait_for_server(url):
        logger.error(f"API did not become healthy at {url}")
        return 1
    logger.info(f"API healthy at {url}; starting UI")
    return run_ui()


HANDLERS: Dict[str, Callable[[], Optional[int]]] = {
    'server': run_server,
    'ui': run_ui,
    'both': run_both,
}


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point of the ``review-annotator`` console script."""
    logging.basicConfig(
        level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    args = sys.argv[1:] if argv is None else argv
    command = args[0].lower() if args else 'both'
    if command not in COMMANDS:
        print(f"Unknown command: {command}", file=sys.stderr)
        print(USAGE, file=sys.stderr)
        sys.exit(2)
    sys.exit(HANDLERS[command]() or 0)


if __name__ == '__main__':
    main()
