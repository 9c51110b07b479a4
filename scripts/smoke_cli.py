"""
Smoke runner for the CLI across providers.

Skips providers whose API key is missing. Uses a low --max-tokens and a
single-iteration tool loop to keep usage minimal.
"""

from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path
from typing import List, Optional, Tuple

PROVIDERS: List[Tuple[str, str, Optional[str]]] = [
    ("openai", "gpt-4o-mini", "OPENAI_API_KEY"),
    ("anthropic", "claude-3-5-haiku-latest", "ANTHROPIC_API_KEY"),
    ("gemini", "gemini-2.0-flash", "GEMINI_API_KEY"),
    ("local", "local", None),
]


def _command(command: str, provider: str, model: str, prompt: str) -> List[str]:
    cmd = [
        sys.executable,
        "-m",
        "forgeai.cli",
        command,
        "--provider",
        provider,
        "--model",
        model,
        "--prompt",
        prompt,
        "--max-tokens",
        "64",
    ]
    if command == "run":
        cmd += ["--max-iterations", "2"]
    return cmd


def main() -> int:
    project_root = Path(__file__).resolve().parents[1]
    env = os.environ.copy()
    existing = env.get("PYTHONPATH", "")
    src = str(project_root / "src")
    env["PYTHONPATH"] = f"{src}{os.pathsep}{existing}" if existing else src

    failures = 0
    for provider, model, env_key in PROVIDERS:
        if env_key and not env.get(env_key):
            print(f"Skipping {provider}: missing {env_key}")
            continue
        commands = [("chat", f"Hello from {provider}")]
        if provider != "local":
            commands.append(("run", "What time is it in UTC? Use a tool."))
        for command, prompt in commands:
            print(f"\n=== Smoke: {command} on {provider} ({model}) ===")
            completed = subprocess.run(_command(command, provider, model, prompt), env=env)
            if completed.returncode != 0:
                failures += 1
                print(f"FAILED: {command} on {provider} (exit {completed.returncode})")

    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
