"""Integration tests for diff command."""

from click.testing import CliRunner

from kit.cli.main import cli
from tests.conftest import write_file


class TestDiffCommand:
    """Tests for kit diff command."""

    def test_diff_no_changes(self, repo_with_commits, monkeypatch):
        """Test diff with no changes prints nothing."""
        monkeypatch.chdir(repo_with_commits.work_tree)
        result = CliRunner().invoke(cli, ['diff'])

        assert result.exit_code == 0
        assert result.output == ''

    def test_diff_modified_file(self, repo_with_commits, monkeypatch):
        """Test diff shows an unstaged modification."""
        repo = repo_with_commits
        monkeypatch.chdir(repo.work_tree)
        write_file(repo, 'file1.txt', 'Hello, Kit!\n')

        result = CliRunner().invoke(cli, ['diff'])
        assert result.exit_code == 0
        assert 'diff --git a/file1.txt b/file1.txt' in result.output
        assert '-Hello, World!' in result.output
        assert '+Hello, Kit!' in result.output

    def test_diff_cached(self, repo_with_commits, monkeypatch):
        """Test --cached shows staged changes only."""
        repo = repo_with_commits
        monkeypatch.chdir(repo.work_tree)
        runner = CliRunner()
        write_file(repo, 'file1.txt', 'staged\n')
        runner.invoke(cli, ['add', 'file1.txt'])

        assert runner.invoke(cli, ['diff']).output == ''
        result = runner.invoke(cli, ['diff', '--cached'])
        assert '+staged' in result.output
        assert runner.invoke(cli, ['diff', '--staged']).output == result.output

    def test_diff_path_filter(self, repo_with_commits, monkeypatch):
        """Test paths limit the output."""
        repo = repo_with_commits
        monkeypatch.chdir(repo.work_tree)
        write_file(repo, 'file1.txt', 'one\n')
        write_file(repo, 'file2.txt', 'two\n')

        result = CliRunner().invoke(cli, ['diff', 'file2.txt'])
        assert 'file2.txt' in result.output
        assert 'file1.txt' not in result.output

    def test_diff_dot_selects_everything(self, repo_with_commits, monkeypatch):
        """Test '.' at the top level matches every path."""
        repo = repo_with_commits
        monkeypatch.chdir(repo.work_tree)
        write_file(repo, 'file1.txt', 'one\n')

        result = CliRunner().invoke(cli, ['diff', '.'])
        assert 'file1.txt' in result.output

    def test_diff_context_option(self, repo_with_commits, monkeypatch):
        """Test -U changes the amount of context."""
        repo = repo_with_commits
        monkeypatch.chdir(repo.work_tree)
        runner = CliRunner()
        write_file(repo, 'long.txt', ''.join(f'{i}\n' for i in range(1, 11)))
        runner.invoke(cli, ['add', 'long.txt'])
        write_file(repo, 'long.txt', ''.join(f'{i}\n' for i in range(1, 11)).replace('5\n', 'five\n'))

        assert '@@ -2,7 +2,7 @@' in runner.invoke(cli, ['diff']).output
        assert '@@ -5 +5 @@' in runner.invoke(cli, ['diff', '-U', '0']).output

    def test_diff_color_flag(self, repo_with_commits, monkeypatch):
        """Test --color forces escape sequences into the diff text."""
        repo = repo_with_commits
        monkeypatch.chdir(repo.work_tree)
        write_file(repo, 'file1.txt', 'colored\n')

        result = CliRunner().invoke(cli, ['diff', '--color'], color=True)
        assert '\x1b[' in result.output
