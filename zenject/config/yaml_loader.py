"""
YAML Service - reads configuration files with PyYAML.
"""

from typing import Any, Dict, Union
from pathlib import Path

import yaml

from .errors import YamlImportError, YamlParseError


class YamlService:
    """
    Loads YAML documents.

    Relative paths resolve against the current working directory.
    """

    async def import_file(self, file_path: Union[str, Path]) -> Dict[str, Any]:
        """
        Load a YAML file into a dict.

        Raises:
            YamlImportError: If the file cannot be read or parsed
        """
        path = Path(file_path)
        if not path.is_absolute():
            path = Path.cwd() / path

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise YamlImportError(f"Failed to import YAML from {file_path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise YamlImportError(
                f"Failed to import YAML from {file_path}: top level must be a mapping, "
                f"got {type(data).__name__}"
            )
        return data

    def parse_content(self, content: str) -> Any:
        """
        Parse YAML text.

        Raises:
            YamlParseError: If the content is not valid YAML
        """
        try:
            return yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise YamlParseError(f"Failed to parse YAML content: {e}") from e
