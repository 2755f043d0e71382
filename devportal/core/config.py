# Dev Portal - Core Configuration

import os
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import Field, ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Dev portal configuration."""

    model_config = ConfigDict(env_prefix="DEVPORTAL_")

    # Paths
    repo_root: Path = Field(default_factory=Path.cwd)
    log_dir: Path = Field(default_factory=lambda: Path.cwd() / "logs")
    registry_file: Optional[Path] = None

    # Suite (launchd agent)
    suite_label: str = "com.msuite.dev"
    suite_plist: Path = Field(
        default_factory=lambda: Path.home()
        / "Library"
        / "LaunchAgents"
        / "com.msuite.dev.plist"
    )
    launchd_domain: str = Field(default_factory=lambda: f"gui/{os.getuid()}")
    suite_ports: List[int] = [4000, 4174]

    # Probing
    port_backend: Literal["auto", "lsof", "psutil"] = "auto"
    probe_timeout: float = 2.0
    health_timeout: float = 2.0
    terminate_grace: float = 5.0
    supervisor_timeout: float = 10.0

    # Launching
    launch_shell: Optional[str] = None
    login_shell: bool = True
    spawn_check: float = 0.5

    # API server
    api_host: str = "127.0.0.1"
    api_port: int = 9100


settings = Settings()
