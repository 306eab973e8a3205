"""Application configuration: settings schema and config.yaml loader"""

import os
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field


CONFIG_FILE = "config.yaml"


class Settings(BaseModel):
    site_title:     str = "mdsite"
    content_dir:    str = Field(default="content", description="Root directory of markdown sources")
    output_dir:     str = Field(default="public",  description="Directory the built site is written to")
    static_dir:     str = Field(default="static",  description="Directory copied verbatim into the output root")
    parser_config:  str = Field(default="gfm-like", description="MarkdownIt parser preset name")
    page_size:      int = Field(default=10, ge=1, description="Entries per listing page")
    workers:        int = Field(default=0,  ge=0, description="Render worker threads; 0 = CPU count")
    include_drafts: bool = Field(default=False, description="Render draft pages (preview mode)")
    tag_case:       Literal["first-seen", "lower"] = Field(
        default="first-seen", description="Canonical casing for tags differing only by case",
    )
    clean:          bool = Field(default=True, description="Empty the output root before writing")
    highlight_cmd:  Optional[str] = Field(default=None, description="External code highlighter command")
    diagram_cmd:    Optional[str] = Field(default=None, description="External diagram renderer command")
    deploy_cmd:     Optional[str] = Field(default=None, description="Deployment command run after a clean build")


def load_config(overrides: dict[str, Any] = None) -> Settings:
    """Load Settings from config.yaml, then MDSITE_<FIELD> env vars, then non-None CLI overrides."""
    data: dict[str, Any] = {}
    if Path(CONFIG_FILE).exists():
        try:
            data = yaml.safe_load(Path(CONFIG_FILE).read_text()) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid {CONFIG_FILE}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Invalid {CONFIG_FILE}: expected a mapping")

    for name in Settings.model_fields:
        if val := os.getenv(f"MDSITE_{name.upper()}"):
            data[name] = val

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**data)


def default_config_yaml() -> str:
    """Return a config.yaml body holding every setting at its default."""
    return yaml.dump(Settings().model_dump(), default_flow_style=False, sort_keys=False)
