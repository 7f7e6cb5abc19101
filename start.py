"""
Startup script for the warehouse scanner API.
"""

import logging
import os
import socket
import subprocess

# Set up comprehensive logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

# Make sure other loggers are also set to INFO level
logging.getLogger('utils').setLevel(logging.INFO)
logging.getLogger('api').setLevel(logging.INFO)


def is_port_in_use(port):
    """Check if a port is already in use"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        return s.connect_ex(('localhost', port)) == 0


def find_available_port(start_port, max_attempts=10):
    """Find an available port starting from start_port"""
    port = start_port
    for _ in range(max_attempts):
        if not is_port_in_use(port):
            return port
        port += 1
    logger.warning(f"Could not find available port after {max_attempts} attempts")
    return start_port  # Return original port as last resort


def run_api(port=8080, reload=False):
    """Run the FastAPI app under uvicorn"""
    api_port = port
    if is_port_in_use(api_port):
        api_port = find_available_port(api_port)
        logger.info(f"Port {port} is in use, using port {api_port} instead")

    logger.info(f"🚀 Starting warehouse scanner API on port {api_port}...")
    command = [
        "uvicorn", "api:app",
        "--host", "0.0.0.0",
        "--port", str(api_port),
    ]
    if reload:
        command.append("--reload")
    try:
        subprocess.run(command, check=True)
    except subprocess.CalledProcessError as e:
        logger.error(f"❌ API failed: {e}")
        raise


def main():
    # Cloud Run passes the port in PORT
    port = int(os.environ.get('PORT', 8080))
    logger.info(f"PORT environment variable: {port}")
    run_api(port, reload=os.environ.get('API_RELOAD', '').lower() in ('1', 'true', 'yes'))


if __name__ == "__main__":
    main()
