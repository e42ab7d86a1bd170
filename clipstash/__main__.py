#!/usr/bin/env python3
"""
ClipStash Server Main Entry Point
Initializes all services with dependency injection and starts the server
"""
import argparse
import asyncio
import logging
import signal
from pathlib import Path
from typing import Optional

import websockets

from clipstash.services.clipboard_service import ClipboardService
from clipstash.services.database_service import DatabaseService
from clipstash.services.notification_service import NotificationService
from clipstash.services.retention_service import RetentionService
from clipstash.services.settings_service import SettingsService
from clipstash.services.thumbnail_service import ThumbnailService
from clipstash.services.websocket_service import WebSocketService

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ClipStashServer:
    """Main server application with dependency injection"""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize server with all services"""
        logging.info("Initializing services...")

        # Initialize services in dependency order
        self.settings_service = SettingsService(config_path)
        self.settings_service.data_dir.mkdir(parents=True, exist_ok=True)
        self.database_service = DatabaseService(str(self.settings_service.db_path))
        self.thumbnail_service = ThumbnailService(
            self.database_service,
            self.settings_service.images_dir,
            max_workers=self.settings_service.thumbnail_workers,
        )
        self.notification_service = NotificationService()
        self.retention_service = RetentionService(
            self.database_service,
            self.settings_service,
            self.settings_service.images_dir,
        )
        self.clipboard_service = ClipboardService(
            self.database_service,
            self.thumbnail_service,
            self.settings_service,
            self.retention_service,
            self.notification_service,
        )
        self.websocket_service = WebSocketService(
            self.database_service,
            self.settings_service,
            self.clipboard_service,
            self.retention_service,
        )
        self.notification_service.subscribe(self.websocket_service.on_item_changed)

        logging.info("All services initialized successfully")

    def run_startup_maintenance(self):
        """
        Orphan sweep, then retention cleanup in the background

        The sweep finishes before clipboard events are accepted; an image archived
        by a new event is on disk before its row commits.
        """
        self.retention_service.cleanup_orphan_images()
        self.retention_service.run_retention_cleanup_async()

    async def start_websocket_server(self):
        """Serve the WebSocket surface until a shutdown signal arrives"""
        server_settings = self.settings_service.server
        loop = asyncio.get_running_loop()
        self.websocket_service.attach_loop(loop)

        stop = loop.create_future()
        for signum in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(signum, stop.set_result, signum)

        logging.info(f"Starting WebSocket server on ws://{server_settings.host}:{server_settings.port}")
        logging.info(f"WebSocket server configured with max_size: {server_settings.max_message_size} bytes")
        async with websockets.serve(
            self.websocket_service.websocket_handler,
            server_settings.host,
            server_settings.port,
            max_size=server_settings.max_message_size,
        ):
            signum = await stop
            logging.info(f"Received signal {signum}, shutting down...")

    def shutdown(self):
        """Drain background work and close the database"""
        for name, service in (
            ("clipboard", self.clipboard_service),
            ("thumbnail", self.thumbnail_service),
            ("notification", self.notification_service),
            ("retention", self.retention_service),
        ):
            try:
                service.shutdown()
            except Exception as e:
                logging.error(f"Error shutting down {name} service: {e}")
        self.database_service.close()
        logging.info("Server shutdown complete")

    def start(self):
        """Start the ClipStash server"""
        self.run_startup_maintenance()
        try:
            asyncio.run(self.start_websocket_server())
        finally:
            self.shutdown()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="clipstash", description="Local clipboard history store")
    parser.add_argument("--config", type=Path, help="Path to settings.yml")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", type=Path, help="Also write logs to this file")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    handlers = [logging.StreamHandler()]
    if args.log_file:
        handlers.append(logging.FileHandler(args.log_file))
    logging.basicConfig(level=getattr(logging, args.log_level), format=LOG_FORMAT, handlers=handlers)

    server = ClipStashServer(args.config)
    server.start()


if __name__ == "__main__":
    main()
