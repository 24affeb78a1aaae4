"""
Unit tests for the exposed .git/config parser.
"""
from gitreclaim.gitconfig import parse_config, repository_name_from_url


class TestParseConfig:
    """Test config parsing."""

    def test_remote_and_user(self):
        content = (
            b'[remote "origin"]\n'
            b'\turl = https://example.com/proj.git\n'
            b'[user]\n'
            b'\temail = a@b.com\n'
            b'\tname = A\n'
        )

        config = parse_config(content)

        assert config.repository_name == "proj"
        assert len(config.remotes) == 1
        assert config.remotes[0].name == "origin"
        assert config.remotes[0].url == "https://example.com/proj.git"
        assert config.user.name == "A"
        assert config.user.email == "a@b.com"
        assert config.token is None

    def test_branches_track_remotes(self):
        content = (
            b'[branch "master"]\n'
            b'\tremote = origin\n'
            b'\tmerge = refs/heads/master\n'
            b'[branch "feature/x"]\n'
            b'\tremote = upstream\n'
        )

        config = parse_config(content)

        assert [(b.name, b.remote) for b in config.branches] == [
            ("master", "origin"),
            ("feature/x", "upstream"),
        ]

    def test_unnamed_sections_use_sentinel(self):
        config = parse_config(b'[remote]\n\turl = git@host:team/app.git\n[branch]\n\tremote = x\n')

        assert config.remotes[0].name == "?"
        assert config.branches[0].name == "?"
        assert config.branches[0].remote == "x"

    def test_repository_name_from_first_remote(self):
        content = (
            b'[remote "origin"]\n'
            b'\turl = https://example.com/team/first.git\n'
            b'[remote "backup"]\n'
            b'\turl = https://example.com/team/second.git\n'
        )

        config = parse_config(content)

        assert config.repository_name == "first"
        assert len(config.remotes) == 2
        assert config.remotes[1].url == "https://example.com/team/second.git"

    def test_github_token(self):
        content = (
            b'[github]\n'
            b'\tuser = leaky\n'
            b'\ttoken = ghp_abcdef\n'
        )

        config = parse_config(content)

        assert config.token is not None
        assert config.token.username == "leaky"
        assert config.token.token == "ghp_abcdef"

    def test_user_username(self):
        config = parse_config(b'[user]\n\tusername = jdoe\n')

        assert config.user.username == "jdoe"

    def test_malformed_and_unknown_lines_ignored(self):
        content = (
            b'[core]\n'
            b'\tbare = false\n'
            b'this line has no equals sign\n'
            b'# comment = ignored\n'
            b'[remote "origin"]\n'
            b'\tURL = https://example.com/a/b.git\n'
            b'\tpushurl = https://example.com/other.git\n'
            b'[unknown "thing"]\n'
            b'\turl = https://example.com/not-a-remote.git\n'
        )

        config = parse_config(content)

        assert len(config.remotes) == 1
        assert config.remotes[0].url == "https://example.com/a/b.git"
        assert config.repository_name == "b"

    def test_values_containing_equals(self):
        config = parse_config(b'[remote "origin"]\n\turl = https://h/p.git?a=b\n')

        assert config.remotes[0].url == "https://h/p.git?a=b"

    def test_key_before_any_section(self):
        config = parse_config(b'url = https://h/p.git\n')

        assert config.remotes == []
        assert config.repository_name == ""

    def test_empty(self):
        config = parse_config(b'')

        assert config.remotes == []
        assert config.branches == []

    def test_header_with_trailing_comment(self):
        content = (
            b'[core] ; defaults\n'
            b'\tbare = false\n'
            b'[remote "origin"] # primary\n'
            b'\turl = https://example.com/proj.git\n'
            b'[user]; identity\n'
            b'\tname = A\n'
        )

        config = parse_config(content)

        assert [r.name for r in config.remotes] == ["origin"]
        assert config.repository_name == "proj"
        assert config.user.name == "A"


class TestRepositoryName:

    def test_https(self):
        assert repository_name_from_url("https://github.com/acme/webshop.git") == "webshop"

    def test_scp_style(self):
        assert repository_name_from_url("git@github.com:webshop.git") == "webshop"

    def test_trailing_slash(self):
        assert repository_name_from_url("https://example.com/team/app/") == "app"
