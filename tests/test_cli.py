"""
Tests for CLI argument parsing and command execution.

Commands run through main() against a respx-mocked server with the
session cache in a temporary directory.
"""

import io
import json
from unittest.mock import MagicMock, patch

import httpx
import pytest
import respx

from tcrs.cli import create_parser, main

BASE_URL = "https://tcrs.example.com"
LOGIN_PAGE = f"{BASE_URL}/login.jsp"
LOGIN = f"{BASE_URL}/servlet/VerifController"
WEEK_PAGE = f"{BASE_URL}/Timecard/timecard_week/daychoose.jsp"
WEEK_SAVE = f"{BASE_URL}/Timecard/timecard_week/weekinfo_deal.jsp"


@pytest.fixture
def environ(tmp_path):
    return {'TCRS_BASE_URL': BASE_URL, 'TCRS_CACHE_DIR': str(tmp_path / 'cache')}


def mock_server(week_html='<html>week</html>'):
    respx.get(LOGIN_PAGE).mock(return_value=httpx.Response(
        200, text='login', headers={'Set-Cookie': 'JSESSIONID=abc123; Path=/'}
    ))
    respx.post(LOGIN).mock(return_value=httpx.Response(200, text='Welcome'))
    respx.get(WEEK_PAGE).mock(return_value=httpx.Response(200, text=week_html))


def login(environ, capsys):
    assert main(['login', 'alice', 's3cret'], environ=environ) == 0
    capsys.readouterr()


class TestCreateParser:
    """Tests for create_parser function."""

    def test_parser_creation(self):
        """Test that parser is created successfully."""
        parser = create_parser()
        assert parser.prog == 'tcrs'

    def test_login_arguments_optional(self):
        """Test that login user and password may come from the environment."""
        args = create_parser().parse_args(['login'])
        assert args.command == 'login'
        assert args.user_id is None
        assert args.password is None

    def test_login_positional(self):
        """Test login positional arguments."""
        args = create_parser().parse_args(['login', 'alice', 's3cret'])
        assert (args.user_id, args.password) == ('alice', 's3cret')

    def test_save_file_required(self):
        """Test that --file is required for save."""
        with pytest.raises(SystemExit):
            create_parser().parse_args(['save'])

    def test_save_short_file_flag(self):
        """Test that -f works for save."""
        args = create_parser().parse_args(['save', '-f', '-', '--date', '2025-01-06'])
        assert args.file == '-'
        assert args.date == '2025-01-06'

    @pytest.mark.parametrize('command', ['login', 'logout', 'status', 'projects', 'week'])
    def test_common_flags(self, command):
        """Test every subcommand accepts --json and --verbose."""
        args = create_parser().parse_args([command, '--json', '-v'])
        assert args.json is True
        assert args.verbose is True

    def test_status_ping(self):
        """Test that --ping flag works."""
        args = create_parser().parse_args(['status', '--ping'])
        assert args.ping is True

    def test_unknown_command(self):
        """Test unknown commands are rejected."""
        with pytest.raises(SystemExit):
            create_parser().parse_args(['fill'])


class TestMain:
    """Tests for the main entry point."""

    def test_no_command(self, environ, capsys):
        """Test missing command prints help and fails."""
        assert main([], environ=environ) == 1
        assert 'usage' in capsys.readouterr().out

    def test_status_not_logged_in(self, environ, capsys):
        """Test status with no session."""
        assert main(['status'], environ=environ) == 0
        assert capsys.readouterr().out.strip() == 'Not logged in'

    def test_status_json(self, environ, capsys):
        """Test status as JSON."""
        assert main(['status', '--json'], environ=environ) == 0
        data = json.loads(capsys.readouterr().out)
        assert data == {'logged_in': False, 'message': 'Not logged in'}

    def test_logout_without_session(self, environ, capsys):
        """Test logout with nothing stored."""
        assert main(['logout'], environ=environ) == 0
        assert 'No active session found' in capsys.readouterr().out

    def test_projects_not_logged_in(self, environ, capsys):
        """Test data commands fail without a session."""
        assert main(['projects', '--json'], environ=environ) == 1
        data = json.loads(capsys.readouterr().out)
        assert data['success'] is False
        assert data['message'] == 'Failed to get projects'
        assert 'not logged in' in data['error']

    def test_invalid_date(self, environ, capsys):
        """Test a malformed --date is reported."""
        assert main(['week', '--date', '06/01/2025'], environ=environ) == 1
        assert 'YYYY-MM-DD' in capsys.readouterr().err

    def test_login_requires_user(self, environ, capsys):
        """Test login without any user id fails."""
        assert main(['login'], environ=environ) == 1
        assert 'TCRS_USER' in capsys.readouterr().err

    def test_login_requires_password_when_not_interactive(self, environ, capsys, monkeypatch):
        """Test login without password and without a terminal fails."""
        monkeypatch.setattr('sys.stdin', io.StringIO(''))
        assert main(['login', 'alice'], environ=environ) == 1
        assert 'TCRS_PASSWORD' in capsys.readouterr().err

    def test_missing_base_url(self, tmp_path, capsys):
        """Test server commands fail without TCRS_BASE_URL."""
        environ = {'TCRS_CACHE_DIR': str(tmp_path)}
        assert main(['login', 'alice', 'pw'], environ=environ) == 1
        assert 'TCRS_BASE_URL' in capsys.readouterr().err

    def test_save_with_out_of_range_hours(self, environ, capsys, tmp_path):
        """Test an oversized number in the entries file exits with an error."""
        entries_file = tmp_path / 'entries.json'
        entries_file.write_text('[{"project_id": "101", "days": [{"hours": 1' + '0' * 400 + '}]}]')

        assert main(['save', '--file', str(entries_file), '--json'], environ=environ) == 1
        data = json.loads(capsys.readouterr().out)
        assert data['success'] is False
        assert 'out of range' in data['error']

    def test_keyboard_interrupt(self, environ):
        """Test Ctrl-C gives the SIGINT exit code."""
        with patch.dict('tcrs.cli.COMMANDS', {'status': MagicMock(side_effect=KeyboardInterrupt)}):
            assert main(['status'], environ=environ) == 130


class TestMainWithServer:
    """Tests for commands that talk to the server."""

    @respx.mock
    def test_login(self, environ, capsys):
        """Test a successful login."""
        mock_server()
        assert main(['login', 'alice', 's3cret'], environ=environ) == 0
        assert 'Successfully logged in as alice' in capsys.readouterr().out

    @respx.mock
    def test_login_from_environment(self, environ, capsys):
        """Test login credentials from TCRS_USER and TCRS_PASSWORD."""
        mock_server()
        environ.update({'TCRS_USER': 'alice', 'TCRS_PASSWORD': 's3cret'})
        assert main(['login', '--json'], environ=environ) == 0
        data = json.loads(capsys.readouterr().out)
        assert data == {'success': True, 'user_id': 'alice', 'message': 'Login successful'}

    @respx.mock
    def test_status_after_login(self, environ, capsys):
        """Test status reports the logged-in user."""
        mock_server()
        login(environ, capsys)

        assert main(['status', '--json'], environ=environ) == 0
        data = json.loads(capsys.readouterr().out)
        assert data['logged_in'] is True
        assert data['user_id'] == 'alice'
        assert data['cookie_count'] == 1

    @respx.mock
    def test_week(self, environ, capsys, week_page_html):
        """Test the week command prints the parsed timecard."""
        mock_server(week_page_html)
        login(environ, capsys)

        assert main(['week', '--json', '--date', '2025-01-06'], environ=environ) == 0
        data = json.loads(capsys.readouterr().out)
        assert data['week_start_date'] == '2025-01-06'
        assert [e['project_id'] for e in data['entries']] == ['101', '202']
        assert data['daily_totals'][1] == 9.5

    @respx.mock
    def test_projects_text(self, environ, capsys, week_page_html):
        """Test the projects command prints the tree."""
        mock_server(week_page_html)
        login(environ, capsys)

        assert main(['projects', '--date', '2025-01-08'], environ=environ) == 0
        out = capsys.readouterr().out
        assert 'Projects for 2025-01-08:' in out
        assert '[leaf]' in out

    @respx.mock
    def test_save(self, environ, capsys, week_page_html, tmp_path):
        """Test the save command posts the entries file."""
        mock_server(week_page_html)
        save_route = respx.post(WEEK_SAVE).mock(return_value=httpx.Response(200, text='Saved'))
        login(environ, capsys)

        entries_file = tmp_path / 'entries.json'
        entries_file.write_text(json.dumps({'entries': [
            {'project_id': '101', 'activity_id': 'u9', 'days': [{'hours': 8}] * 5},
        ]}))

        assert main(['save', '--file', str(entries_file), '--date', '2025-01-06', '--json'],
                    environ=environ) == 0
        data = json.loads(capsys.readouterr().out)
        assert data['success'] is True
        assert data['entries_saved'] == 1
        assert b'norTotal0=8' in save_route.calls.last.request.content

    @respx.mock
    def test_save_failure(self, environ, capsys, week_page_html, tmp_path):
        """Test a rejected save exits with an error."""
        mock_server(week_page_html)
        respx.post(WEEK_SAVE).mock(return_value=httpx.Response(200, text='Error: invalid data'))
        login(environ, capsys)

        entries_file = tmp_path / 'entries.json'
        entries_file.write_text(json.dumps([{'project_id': '101'}]))

        assert main(['save', '-f', str(entries_file)], environ=environ) == 1
        assert 'Failed to save timecard' in capsys.readouterr().err

    @respx.mock
    def test_logout(self, environ, capsys):
        """Test logout after login removes the session."""
        mock_server()
        respx.get(LOGIN, params={'method': 'logout'}).mock(return_value=httpx.Response(200, text='bye'))
        login(environ, capsys)

        assert main(['logout'], environ=environ) == 0
        assert 'Successfully logged out alice' in capsys.readouterr().out

        assert main(['status'], environ=environ) == 0
        assert capsys.readouterr().out.strip() == 'Not logged in'

    @respx.mock
    def test_network_failure_hint(self, environ, capsys):
        """Test DNS failures print the connectivity hints."""
        respx.get(LOGIN_PAGE).mock(side_effect=httpx.ConnectError('[Errno -2] Name or service not known'))

        assert main(['login', 'alice', 's3cret'], environ=environ) == 1
        err = capsys.readouterr().err
        assert 'Login failed' in err
        assert 'NETWORK CONNECTIVITY CHECK FAILED' in err
