"""
Parser for the exposed .git/config file.

Implements the small INI subset git uses: "[section]" or
[section "subsection"] headers followed by "key = value" lines. Extracts
remotes, branches, user identity and leaked GitHub tokens.
"""
from typing import Optional

from gitreclaim.models import Branch, Remote, RepositoryConfig, TokenCredential


UNNAMED = '?'

TOKEN_SECTIONS = {'github'}


def repository_name_from_url(url: str) -> str:
    """
    Derive a display name from a remote URL.

    Takes the segment after the last "/" (or after ":" for scp-style
    git@host:name.git URLs) and strips a trailing ".git".
    """
    url = url.rstrip('/')
    if '/' in url:
        name = url.rsplit('/', 1)[1]
    elif ':' in url:
        name = url.rsplit(':', 1)[1]
    else:
        name = url

    if name.endswith('.git'):
        name = name[:-len('.git')]
    return name


def _parse_header(line: str):
    """
    Split a "[section "sub"]" header into (section, subsection or None).

    Anything after the closing "]", such as a trailing comment, is dropped.
    """
    inner = line[1:].split(']', 1)[0].strip()

    section, _, rest = inner.partition(' ')
    subsection = None
    rest = rest.strip()
    if rest:
        subsection = rest.strip('"')
    elif '.' in section:
        # legacy [section.subsection] form
        section, subsection = section.split('.', 1)

    return section.lower(), subsection


def parse_config(content: bytes) -> RepositoryConfig:
    """
    Parse a git config file.

    Unknown sections and keys are ignored, lines without "=" are skipped.

    Args:
        content: Raw bytes of the config file

    Returns:
        RepositoryConfig
    """
    config = RepositoryConfig()
    section: Optional[str] = None

    for raw_line in content.decode('utf-8', errors='replace').splitlines():
        line = raw_line.strip()
        if not line or line[0] in '#;':
            continue

        if line.startswith('['):
            section, subsection = _parse_header(line)
            name = subsection or UNNAMED
            if section == 'remote':
                config.remotes.append(Remote(name=name))
            elif section == 'branch':
                config.branches.append(Branch(name=name))
            elif section in TOKEN_SECTIONS and config.token is None:
                config.token = TokenCredential()
            continue

        if '=' not in line:
            continue

        key, _, value = line.partition('=')
        key = key.strip().lower()
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] == '"':
            value = value[1:-1]

        if section == 'remote' and config.remotes:
            if key == 'url':
                config.remotes[-1].url = value
                if not config.repository_name:
                    config.repository_name = repository_name_from_url(value)
        elif section == 'branch' and config.branches:
            if key == 'remote':
                config.branches[-1].remote = value
        elif section == 'user':
            if key == 'name':
                config.user.name = value
            elif key == 'email':
                config.user.email = value
            elif key == 'username':
                config.user.username = value
        elif section in TOKEN_SECTIONS and config.token is not None:
            if key in ('user', 'username'):
                config.token.username = value
            elif key == 'token':
                config.token.token = value

    return config
