import argparse
import logging
import sys
import asyncio
from drift_signal.mcp_server.server import server
from drift_signal.core.config import load_config

def main():
    parser = argparse.ArgumentParser(
        description="Drift Signal MCP Server - signal-only drift trends and drift/risk association",
        epilog="Example: python -m drift_signal.mcp_server --config custom.yaml"
    )
    parser.add_argument(
        "--config",
        help="Path to configuration YAML file (default: driftsignal.config.yaml)"
    )
    parser.add_argument("--project-root", help="Repository root holding the .mindforge state directory")

    args = parser.parse_args()

    cli_args = {"project_root": args.project_root}
    config = load_config(config_path=args.config, cli_args=cli_args)

    logging.basicConfig(level=config.log_level.upper(), stream=sys.stderr)

    # Tools rebuild the pydantic model from this dict on every call
    server.config = config.model_dump()

    logging.info(f"Server starting with config: {server.config}")
    logging.info("Server running on stdio")
    try:
        asyncio.run(server.run_stdio_async())
    except KeyboardInterrupt:
        logging.info("Server stopped")

if __name__ == "__main__":
    main()
