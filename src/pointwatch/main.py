import argparse
import asyncio
import json
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

from loguru import logger

from pointwatch.config import load_config
from pointwatch.errors import ConfigError
from pointwatch.history import MatchRecord
from pointwatch.models import MotionSample, Side, Sport
from pointwatch.serial_client import SerialClient
from pointwatch.session import SessionManager

COMMANDS = {
    '1': "point for You",
    '2': "point for Opponent",
    'u': "undo last point",
    'q': "finish match and quit",
}


def setup_logging(config: dict):
    log_level = config['system']['log_level']
    logger.remove()
    logger.add(
        sys.stdout,
        level=log_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
    )
    logger.add(
        config['system']['log_file'],
        rotation="10 MB",
        level=log_level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"
    )


class PointWatchApp:
    def __init__(self, config_path: Optional[str] = "config/config.yaml",
                 sport: Sport = Sport.PICKLEBALL, doubles: Optional[bool] = None,
                 first_server: Side = Side.PLAYER1):
        self.config = load_config(config_path)
        setup_logging(self.config)

        self.sport = sport
        self.doubles = doubles
        self.first_server = first_server

        self.sessions = SessionManager(self.config, history_sink=self._save_record)
        self.serial_client = SerialClient(self.config)

        self.is_running = False
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self.commands: Optional[asyncio.Queue] = None
        self.input_task: Optional[asyncio.Task] = None

        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        self.is_running = False
        if self.loop is not None and self.input_task is not None:
            self.loop.call_soon_threadsafe(self.input_task.cancel)

    def _save_record(self, record: MatchRecord):
        history_file = Path(self.config['system']['history_file'])
        history_file.parent.mkdir(parents=True, exist_ok=True)
        with open(history_file, 'a') as f:
            f.write(json.dumps(record.to_dict()) + "\n")
        logger.info(f"Match saved to {history_file}")

    def _handle_sample(self, sample: MotionSample):
        # Called on the serial reading thread
        if self.loop is not None:
            self.loop.call_soon_threadsafe(self._process_sample, sample)

    def _process_sample(self, sample: MotionSample):
        try:
            self.sessions.handle_sample(sample)
        except Exception as e:
            logger.error(f"Error processing motion sample: {e}")

    async def start(self):
        logger.info("Starting pointwatch")
        logger.info(f"Version: {self.config['system']['version']}")

        self.loop = asyncio.get_running_loop()
        self.is_running = True
        self.sessions.create_match(self.sport, self.first_server, self.doubles)

        self.serial_client.set_data_callback(self._handle_sample)
        if await self.serial_client.connect():
            logger.info("Motion sensor connected")
        else:
            logger.warning("No motion sensor, scoring only")

        if not self.is_running:
            return
        self._print_help()
        self._print_score()

        self.commands = asyncio.Queue()
        self._start_stdin_thread()
        self.input_task = self.loop.create_task(self._input_loop())
        try:
            await self.input_task
        except asyncio.CancelledError:
            if self.is_running:
                raise
            logger.info("Input loop cancelled")

    def _start_stdin_thread(self):
        def _read_stdin():
            """Forward stdin lines to the loop (runs in background thread)"""
            try:
                for line in sys.stdin:
                    self.loop.call_soon_threadsafe(self.commands.put_nowait, line)
                self.loop.call_soon_threadsafe(self.commands.put_nowait, None)
            except RuntimeError:
                # Loop already closed during shutdown
                return

        threading.Thread(target=_read_stdin, daemon=True).start()

    async def _input_loop(self):
        while self.is_running:
            line = await self.commands.get()
            if line is None:
                break
            self.handle_command(line.strip().lower())

    def handle_command(self, command: str):
        if command == '1':
            self.sessions.record_point(Side.PLAYER1)
        elif command == '2':
            self.sessions.record_point(Side.PLAYER2)
        elif command == 'u':
            if not self.sessions.undo():
                print("Nothing to undo")
        elif command == 'q':
            self.is_running = False
            return
        else:
            self._print_help()
            return
        self._print_score()

    def _print_help(self):
        for key, description in COMMANDS.items():
            print(f"  {key}: {description}")

    def _print_score(self):
        session = self.sessions.active
        if session is None:
            return
        match = session.match
        you = match.format_score(Side.PLAYER1)
        opponent = match.format_score(Side.PLAYER2)
        line = f"You {you} - {opponent} Opponent | serving: {match.server.label}"

        summary = match.match_score_summary()
        if summary:
            line += f" | {summary}"
        call = match.score_call()
        if call:
            line += f" | {call}"
        style = self.sessions.calibration.backhand(match.sport).backhand_style
        if style:
            line += f" | backhand: {style}"
        if match.is_match_over:
            line += f" | {match.winner.label} won"
        print(line)

    async def stop(self):
        logger.info("Stopping pointwatch")
        self.is_running = False

        record = await self.sessions.finish()
        if record is not None:
            insights = self.sessions.active.insights()
            if insights is not None:
                story = insights.story()
                print(story.headline)
                for insight in story.insights:
                    print(f"  {insight}")

        await self.serial_client.disconnect()
        logger.info("Stopped")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Track a racket sport match from the terminal")
    parser.add_argument('--config', default="config/config.yaml", help="Path to YAML config")
    parser.add_argument('--sport', choices=[sport.name.lower() for sport in Sport],
                        default=Sport.PICKLEBALL.name.lower())
    parser.add_argument('--doubles', action='store_true', default=None)
    parser.add_argument('--opponent-serves', action='store_true',
                        help="Opponent serves first")
    return parser.parse_args(argv)


async def main(argv=None):
    args = parse_args(argv)
    app = None

    try:
        app = PointWatchApp(
            config_path=args.config,
            sport=Sport[args.sport.upper()],
            doubles=args.doubles,
            first_server=Side.PLAYER2 if args.opponent_serves else Side.PLAYER1,
        )
        await app.start()

    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        raise
    finally:
        if app:
            await app.stop()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
