"""Version discovery in the main plugin source file."""

import logging
import re

from plugin_release.errors import NoVersionFound
from plugin_release.models import DeclarationKind, VersionDeclaration
from plugin_release.utils import DEFAULT_VERSION_POLICY, VersionPolicy, higher_version

logger = logging.getLogger(__name__)

VERSION_VALUE = r"[0-9]+\.[0-9]+(?:\.[0-9]+)?"

# Plugin header: "Version: 1.2.3" inside a block comment or after //
DOC_COMMENT_VERSION_RE = re.compile(
    rf"(?:/\*.*?\bVersion:\s*|//\s*Version:\s*)({VERSION_VALUE})",
    re.IGNORECASE | re.DOTALL,
)

# Class property: private $version = '1.2.3';
FIELD_VERSION_RE = re.compile(
    rf"""private\s+\$version\s*=\s*['"]+({VERSION_VALUE})['"]+"""
)

# define('MY_PLUGIN_VERSION', '1.2.3')
CONSTANT_VERSION_RE = re.compile(
    rf"""define\s*\(\s*['"]([A-Z_]+)_VERSION['"]\s*,\s*['"]({VERSION_VALUE})['"]\s*\)"""
)


class VersionExtractor:
    """Finds the independent version declarations of a plugin source."""

    def __init__(self, policy: VersionPolicy = DEFAULT_VERSION_POLICY):
        """Initialize the extractor.

        Args:
            policy: Tie-break policy for versions with an equal common prefix
        """
        self.policy = policy

    def find_declarations(self, content: str) -> list[VersionDeclaration]:
        """Locate the first match of each declaration kind.

        Args:
            content: Full source text

        Returns:
            Declarations in the order doc comment, field, constant; kinds
            that do not occur are left out.
        """
        declarations = []

        match = DOC_COMMENT_VERSION_RE.search(content)
        if match:
            declarations.append(
                VersionDeclaration(
                    kind=DeclarationKind.DOC_COMMENT,
                    value=match.group(1),
                    start=match.start(1),
                    end=match.end(1),
                )
            )
            logger.info(f"Version in plugin header: {match.group(1)}")

        match = FIELD_VERSION_RE.search(content)
        if match:
            declarations.append(
                VersionDeclaration(
                    kind=DeclarationKind.FIELD,
                    value=match.group(1),
                    start=match.start(1),
                    end=match.end(1),
                )
            )
            logger.info(f"Version in class property: {match.group(1)}")

        match = CONSTANT_VERSION_RE.search(content)
        if match:
            constant_name = f"{match.group(1)}_VERSION"
            declarations.append(
                VersionDeclaration(
                    kind=DeclarationKind.CONSTANT,
                    value=match.group(2),
                    start=match.start(2),
                    end=match.end(2),
                    name=constant_name,
                )
            )
            logger.info(f"Version in constant {constant_name}: {match.group(2)}")

        return declarations

    def winning_version(self, declarations: list[VersionDeclaration]) -> str:
        """Pick the highest declared version.

        Raises:
            NoVersionFound: If there are no declarations
        """
        current = ""
        for declaration in declarations:
            current = higher_version(current, declaration.value, self.policy)

        if not current:
            raise NoVersionFound("No valid version declaration found in plugin source")
        return current

    def extract(self, content: str) -> tuple[str, list[VersionDeclaration]]:
        """Find all declarations and the winning version."""
        declarations = self.find_declarations(content)
        return self.winning_version(declarations), declarations
