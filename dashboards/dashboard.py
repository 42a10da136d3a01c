"""
Real-Time Attack Simulation Dashboard

Serves the platform command surface over HTTP and Socket.IO and pushes
state snapshots to connected clients.
"""
from flask import Flask, Response, jsonify, request
from flask_socketio import SocketIO, emit
import argparse
import dataclasses
import logging
from threading import Lock

from engine.persistence import JsonFileStore
from engine.platform import AttackDetectionPlatform, CommandResult
from engine.scheduler import realtime_environment
from sinks.mqtt_sink import MqttEventSink

logger = logging.getLogger(__name__)

SCHEDULER_POLL_SECONDS = 0.1


class SocketIORenderer:
    """Broadcasts platform state to every dashboard client"""

    def __init__(self, socketio: SocketIO):
        self.socketio = socketio

    def render(self, state):
        self.socketio.emit('state_update', state, namespace='/')


def _result_payload(result: CommandResult) -> dict:
    payload = result.to_dict()
    if dataclasses.is_dataclass(result.data):
        payload['data'] = dataclasses.asdict(result.data)
    return payload


def create_app(platform: AttackDetectionPlatform, async_mode: str = 'eventlet'):
    """
    Build the Flask app and Socket.IO server around a platform.

    Args:
        platform: Started (or not yet started) platform instance
        async_mode: Socket.IO async mode (eventlet in production, threading in tests)

    Returns:
        (app, socketio)
    """
    app = Flask(__name__)
    app.config['SECRET_KEY'] = 'iot-attack-range-secret'
    socketio = SocketIO(app, cors_allowed_origins="*", async_mode=async_mode)

    # Commands and the scheduler pump share one timeline
    platform_lock = Lock()
    platform.renderer = SocketIORenderer(socketio)

    def run_command(command, *args, **kwargs) -> dict:
        with platform_lock:
            # bring the timeline up to wall time before stamping anything
            platform.scheduler.run_pending()
            return _result_payload(command(*args, **kwargs))

    @app.route('/api/state')
    def state():
        with platform_lock:
            return jsonify(platform.get_state())

    @app.route('/api/logs')
    def logs():
        filters = {key: request.args.get(key) for key in ('type', 'severity', 'source', 'search')}
        page = request.args.get('page', 1, type=int)
        page_size = request.args.get('page_size', 50, type=int)
        with platform_lock:
            result = platform.get_filtered_logs(filters, page=page, page_size=page_size)
            return jsonify(result.to_dict())

    @app.route('/api/logs/export/<fmt>')
    def export(fmt):
        filters = {key: request.args.get(key) for key in ('type', 'severity', 'source', 'search')}
        with platform_lock:
            result = platform.export_logs(fmt, filters)
        if not result.ok:
            return jsonify(result.to_dict()), 400
        exported = result.data
        return Response(
            exported.content,
            mimetype=exported.mime_type,
            headers={'Content-Disposition': f'attachment; filename={exported.filename}'}
        )

    @app.route('/api/history')
    def history():
        with platform_lock:
            return jsonify({
                'attacks': platform.get_attack_history(),
                'summary': platform.get_history_summary()
            })

    @socketio.on('connect')
    def handle_connect(auth=None):
        """Client connected to dashboard"""
        logger.info("Client connected to dashboard")
        with platform_lock:
            emit('state_update', platform.get_state())

    @socketio.on('disconnect')
    def handle_disconnect(*args):
        """Client disconnected from dashboard"""
        logger.info("Client disconnected from dashboard")

    @socketio.on('launch_attack')
    def handle_launch(data=None):
        data = data or {}
        delay_seconds = data.get('delay', 10)
        try:
            delay_ms = float(delay_seconds) * 1000
        except (TypeError, ValueError):
            delay_ms = -1
        return run_command(
            platform.launch_attack,
            data.get('type', 'ddos'),
            targets=data.get('targets') or None,
            delay_ms=delay_ms,
            parameters=data.get('parameters') or {}
        )

    @socketio.on('launch_test_attack')
    def handle_test_attack(data=None):
        return run_command(platform.launch_test_attack)

    @socketio.on('pause_attack')
    def handle_pause(data=None):
        return run_command(platform.pause_attack)

    @socketio.on('stop_attack')
    def handle_stop(data=None):
        return run_command(platform.stop_attack)

    @socketio.on('emergency_stop')
    def handle_emergency_stop(data=None):
        return run_command(platform.emergency_stop)

    @socketio.on('clear_logs')
    def handle_clear_logs(data=None):
        return run_command(platform.clear_all_logs, confirmed=bool((data or {}).get('confirmed')))

    @socketio.on('update_settings')
    def handle_update_settings(data=None):
        return run_command(platform.update_settings, data or {})

    @socketio.on('toggle_device')
    def handle_toggle_device(data=None):
        return run_command(platform.toggle_device, (data or {}).get('device_id', ''))

    @socketio.on('replay')
    def handle_replay(data=None):
        data = data or {}
        action = data.get('action')
        if action == 'load':
            return run_command(platform.load_replay, data.get('attack_id', ''))
        if action == 'play':
            return run_command(platform.play_replay)
        if action == 'pause':
            return run_command(platform.pause_replay)
        if action == 'stop':
            return run_command(platform.stop_replay)
        if action in ('step', 'seek'):
            key, default = ('delta', 1) if action == 'step' else ('index', 0)
            try:
                value = int(data.get(key, default))
            except (TypeError, ValueError):
                return CommandResult(ok=False, message=f"Invalid replay {key}: {data.get(key)!r}",
                                     error="InvalidRequestError").to_dict()
            command = platform.step_replay if action == 'step' else platform.seek_replay
            return run_command(command, value)
        return CommandResult(ok=False, message=f"Unknown replay action: {action}").to_dict()

    def pump_scheduler():
        """Fire due platform timers from a background task"""
        while True:
            with platform_lock:
                platform.scheduler.run_pending()
            socketio.sleep(SCHEDULER_POLL_SECONDS)

    app.extensions['attack_platform'] = platform
    app.extensions['attack_platform_pump'] = pump_scheduler
    return app, socketio


def run_dashboard(platform, host='0.0.0.0', port=5000, async_mode='eventlet'):
    """Run the dashboard server"""
    app, socketio = create_app(platform, async_mode=async_mode)
    platform.start()
    socketio.start_background_task(app.extensions['attack_platform_pump'])
    logger.info(f"Starting dashboard on http://{host}:{port}")
    socketio.run(app, host=host, port=port, debug=False)


def main():
    """Main entry point for standalone execution"""
    parser = argparse.ArgumentParser(description="IoT Attack Simulation Dashboard")
    parser.add_argument("--host", default="0.0.0.0", help="Dashboard bind address")
    parser.add_argument("--port", type=int, default=5000, help="Dashboard port")
    parser.add_argument("--data-dir", default="data", help="Directory for saved platform state")
    parser.add_argument("--broker", default="localhost", help="MQTT broker host")
    parser.add_argument("--broker-port", type=int, default=1883, help="MQTT broker port")
    parser.add_argument("--no-mqtt", action="store_true", help="Do not publish events to MQTT")
    parser.add_argument("--async-mode", default="eventlet", help="Socket.IO async mode")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    platform = AttackDetectionPlatform(store=JsonFileStore(args.data_dir), env=realtime_environment())

    sink = None
    if not args.no_mqtt:
        sink = MqttEventSink(broker_host=args.broker, broker_port=args.broker_port)
        if sink.connect():
            sink.attach(platform)

    try:
        run_dashboard(platform, host=args.host, port=args.port, async_mode=args.async_mode)
    finally:
        platform.save_data()
        if sink is not None and sink.connected:
            sink.disconnect()


if __name__ == '__main__':
    main()
