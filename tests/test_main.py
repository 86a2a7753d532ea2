import asyncio
import signal

import pytest

from pointwatch import main
from pointwatch.models import Side, Sport


@pytest.fixture
def app(monkeypatch):
    monkeypatch.setattr(main, "setup_logging", lambda config: None)
    monkeypatch.setattr(main.signal, "signal", lambda signum, handler: None)
    app = main.PointWatchApp(config_path=None)
    app.sessions.create_match(Sport.PICKLEBALL)
    return app


def test_commands_update_score(app, capsys):
    app.handle_command('1')
    app.handle_command('2')
    app.handle_command('u')

    assert app.sessions.active.match.state.points.as_tuple() == (1, 0)
    assert "You 1 - 0 Opponent" in capsys.readouterr().out


def test_quit_command_stops_app(app):
    app.is_running = True
    app.handle_command('q')
    assert not app.is_running


def test_input_loop_drains_queued_lines(app):
    async def scenario():
        app.is_running = True
        app.commands = asyncio.Queue()
        for line in ("1\n", " 1 \n", None):
            app.commands.put_nowait(line)
        await app._input_loop()

    asyncio.run(scenario())
    assert app.sessions.active.match.state.points.as_tuple() == (2, 0)


def test_signal_cancels_waiting_input_loop(app):
    async def scenario():
        app.loop = asyncio.get_running_loop()
        app.is_running = True
        app.commands = asyncio.Queue()
        app.input_task = app.loop.create_task(app._input_loop())
        await asyncio.sleep(0)

        # No input ever arrives; the signal alone must end the loop
        app._signal_handler(signal.SIGINT, None)
        with pytest.raises(asyncio.CancelledError):
            await app.input_task

    asyncio.run(scenario())

    assert app.input_task.cancelled()
    assert not app.is_running
