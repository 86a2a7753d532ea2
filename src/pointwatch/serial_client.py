import asyncio
import re
import threading
import time
from typing import Callable, Optional

import serial
import serial.tools.list_ports
from loguru import logger

from pointwatch.errors import SensorError
from pointwatch.models import MotionSample

# "0.12,-1.30,0.44,0.10,2.05,-0.31" (ax,ay,az in g, gx,gy,gz in rad/s)
CSV_PATTERN = re.compile(r"^\s*" + r"\s*,\s*".join([r"(-?\d+(?:\.\d+)?)"] * 6) + r"\s*$")
# "Accel X: 0.12 | Y: -1.30 | Z: 0.44 | Gyro X: 0.10 | Y: 2.05 | Z: -0.31"
LABELLED_PATTERN = re.compile(
    r"Accel X:\s*(-?\d+(?:\.\d+)?)\s*\|\s*Y:\s*(-?\d+(?:\.\d+)?)\s*\|\s*Z:\s*(-?\d+(?:\.\d+)?)\s*\|\s*"
    r"Gyro X:\s*(-?\d+(?:\.\d+)?)\s*\|\s*Y:\s*(-?\d+(?:\.\d+)?)\s*\|\s*Z:\s*(-?\d+(?:\.\d+)?)"
)

USB_SERIAL_IDENTIFIERS = ['CP210x', 'CH340', 'ESP32', 'Silicon Labs', 'USB2.0-Serial']


def parse_motion_line(line: str, timestamp: float) -> Optional[MotionSample]:
    match = CSV_PATTERN.match(line) or LABELLED_PATTERN.search(line)
    if not match:
        return None
    ax, ay, az, gx, gy, gz = map(float, match.groups())
    return MotionSample.from_values(ax, ay, az, gx, gy, gz, timestamp)


class SerialClient:
    def __init__(self, config: dict, clock: Callable[[], float] = time.monotonic):
        self.config = config
        self.port: Optional[str] = config['sensor']['port']
        self.baudrate = config['sensor']['baudrate']
        self._clock = clock

        self.serial_connection: Optional[serial.Serial] = None
        self.is_connected = False
        self.is_reading = False
        self.read_thread: Optional[threading.Thread] = None

        self.data_callback: Optional[Callable[[MotionSample], None]] = None

    def find_port(self) -> Optional[str]:
        """Find a USB serial port that looks like a motion sensor"""
        for port in serial.tools.list_ports.comports():
            logger.debug(f"Found port: {port.device} - {port.description}")
            description = (port.description or '').lower()
            if any(identifier.lower() in description for identifier in USB_SERIAL_IDENTIFIERS):
                logger.info(f"Motion sensor found: {port.device}")
                return port.device
        return None

    def _open(self) -> serial.Serial:
        port = self.port or self.find_port()
        if not port:
            raise SensorError("No motion sensor serial port found")
        self.port = port

        try:
            return serial.Serial(port=port, baudrate=self.baudrate, timeout=2.0)
        except serial.SerialException as e:
            raise SensorError(f"Failed to open {port}: {e}") from e

    async def connect(self, settle_time: float = 2.0) -> bool:
        """Open the sensor port and start the reading thread"""
        try:
            self.serial_connection = self._open()
        except SensorError as e:
            logger.warning(f"{e}, continuing without motion tracking")
            return False

        logger.info(f"Connecting to motion sensor on {self.port}...")
        await asyncio.sleep(settle_time)

        self.is_connected = True
        self._start_reading_thread()
        return True

    def _start_reading_thread(self):
        self.is_reading = True
        self.read_thread = threading.Thread(target=self._reading_loop, daemon=True)
        self.read_thread.start()
        logger.info("Serial reading thread started")

    def handle_line(self, line: str) -> Optional[MotionSample]:
        if not line:
            return None
        sample = parse_motion_line(line, self._clock())
        if sample is None:
            logger.debug(f"Skipping malformed line '{line}'")
            return None
        if self.data_callback:
            self.data_callback(sample)
        return sample

    def _reading_loop(self):
        """Main reading loop (runs in background thread)"""
        while self.is_reading and self.is_connected:
            try:
                if self.serial_connection and self.serial_connection.in_waiting > 0:
                    line = self.serial_connection.readline().decode('utf-8', errors='ignore').strip()
                    self.handle_line(line)

                time.sleep(0.001)

            except serial.SerialException as e:
                logger.error(f"Serial read failed: {e}")
                self.is_connected = False

        logger.info("Serial reading loop ended")

    async def disconnect(self):
        self.is_reading = False
        self.is_connected = False

        if self.read_thread and self.read_thread.is_alive():
            self.read_thread.join(timeout=2.0)

        if self.serial_connection:
            try:
                self.serial_connection.close()
                logger.info("Serial connection closed")
            except serial.SerialException as e:
                logger.error(f"Error closing serial connection: {e}")

        self.serial_connection = None

    def set_data_callback(self, callback: Callable[[MotionSample], None]):
        self.data_callback = callback

    def get_connection_info(self) -> dict:
        return {
            'type': 'USB Serial',
            'port': self.port,
            'baudrate': self.baudrate,
            'connected': self.is_connected,
        }
