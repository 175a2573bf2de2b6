import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

LOG = logging.getLogger("asmbolt.config")

DEFAULT_CONFIG: Dict[str, Any] = {
    # Directory holding compile_commands.json
    "compilation_directory": "${workspaceFolder}",
    "demangler": "c++filt",
    # Extra environment for the compiler process, e.g. SDKROOT / DEVELOPER_DIR
    "environment": {},
    # Literal argv tokens replaced just before the compiler runs
    "argument_rewrites": [
        ['-D"BAZEL_CURRENT_REPOSITORY="""', '-DBAZEL_CURRENT_REPOSITORY=""'],
        # The same flag once quotes are stripped from a `command` string
        ['-DBAZEL_CURRENT_REPOSITORY=', '-DBAZEL_CURRENT_REPOSITORY=""'],
    ],
    "watch_source": True,
}

RE_VARIABLE = re.compile(r"\$\{(.*?)\}")


class ConfigManager:
    """
    Loads user settings from ~/.asmbolt/config.json on top of DEFAULT_CONFIG.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = config_dir if config_dir else Path.home() / ".asmbolt"
        self.config_file = self.config_dir / "config.json"
        self.config = self.load_config()

    def load_config(self) -> Dict[str, Any]:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        config = json.loads(json.dumps(DEFAULT_CONFIG))
        if not self.config_file.exists():
            return config

        try:
            with open(self.config_file, "r") as f:
                user_config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            LOG.warning("ignoring unreadable config %s: %s", self.config_file, e)
            return config

        if isinstance(user_config, dict):
            config.update(user_config)
        return config

    def save_config(self):
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w") as f:
            json.dump(self.config, f, indent=2)

    def get(self, key: str, default: Any = None) -> Any:
        return self.config.get(key, default)

    def set(self, key: str, value: Any):
        self.config[key] = value
        self.save_config()

    @property
    def environment(self) -> Dict[str, str]:
        return {str(k): str(v) for k, v in (self.get("environment") or {}).items()}

    @property
    def argument_rewrites(self) -> List[Tuple[str, str]]:
        return [(str(old), str(new)) for old, new in (self.get("argument_rewrites") or [])]


def resolve_path(template: str, source_file: str, workspace_folder: str) -> str:
    """
    Expands ${workspaceFolder}-style variables in a configured path.
    Unknown variables are left as they are; the result is normalized.
    """
    workspace_folder = os.path.abspath(workspace_folder)
    source_file = os.path.abspath(source_file)

    in_workspace = os.path.commonpath([workspace_folder, source_file]) == workspace_folder
    variables = {
        "workspaceFolder": workspace_folder,
        "workspaceFolderBasename": os.path.basename(workspace_folder),
        "file": source_file,
        "fileWorkspaceFolder": workspace_folder if in_workspace else "",
        "relativeFile": os.path.relpath(source_file, workspace_folder),
        "pathSeparator": os.sep,
    }

    def substitute(match: "re.Match") -> str:
        value = variables.get(match.group(1))
        return value if value is not None else match.group(0)

    return os.path.normpath(RE_VARIABLE.sub(substitute, template))
