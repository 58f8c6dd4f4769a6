#!/usr/bin/env python3
import os
import argparse
import asyncio
import logging
import sys

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler("novamanga.log")
    ]
)
logger = logging.getLogger(__name__)

COMMANDS_HELP = (
    "Commands: [enter]/space toggle auto-read, n next, p previous, "
    "g <page> go to page, r retry page, x dismiss error, q quit"
)


def describe(status) -> str:
    flags = []
    if status.is_playing:
        flags.append("auto-reading")
    if status.is_analyzing:
        flags.append("extracting")
    if status.has_failed:
        flags.append("extraction failed")
    elif status.has_transcription:
        flags.append("text ready")
    line = f"Page {status.current_index + 1}/{status.page_count} ({status.page_name})"
    if flags:
        line += f" [{', '.join(flags)}]"
    if status.error_message:
        line += f" ! {status.error_message}"
    return line


def apply_command(controller, command: str) -> bool:
    """Apply one typed command; returns False when the user wants to quit."""
    command = command.strip()
    if command in ("", "space"):
        controller.handle_key(" ")
    elif command == "n":
        controller.handle_key("ArrowRight")
    elif command == "p":
        controller.handle_key("ArrowLeft")
    elif command.startswith("g "):
        try:
            controller.seek(int(command[2:].strip()) - 1)
        except ValueError:
            logger.warning(f"Not a page number: {command[2:]}")
    elif command == "r":
        controller.retry_current()
    elif command == "x":
        controller.dismiss_error()
    elif command == "q":
        return False
    else:
        logger.info(COMMANDS_HELP)
    return True


async def run_reader(archive_path: str) -> int:
    from novamanga.controller import PlaybackController
    from novamanga.speech import EdgeSpeechEngine
    from novamanga.transcriber import create_transcriber

    controller = PlaybackController(create_transcriber(), EdgeSpeechEngine())
    if not await controller.load_archive(archive_path):
        logger.error(controller.error_message)
        return 1

    logger.info(COMMANDS_HELP)
    logger.info(describe(controller.status()))
    loop = asyncio.get_running_loop()
    try:
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line or not apply_command(controller, line.rstrip("\n")):
                break
            logger.info(describe(controller.status()))
    finally:
        controller.close()
    return 0


def main():
    """
    Main entry point for the Novamanga reader.
    """
    # Parse command line arguments
    parser = argparse.ArgumentParser(
        description="Novamanga: auto-reading manga reader with multimodal transcription"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    read_parser = subparsers.add_parser("read", help="Read an archive aloud")
    read_parser.add_argument("archive", help="Path to the .cbz or .zip file")

    transcribe_parser = subparsers.add_parser("transcribe", help="Transcribe every page to JSON")
    transcribe_parser.add_argument("archive", help="Path to the .cbz or .zip file")
    transcribe_parser.add_argument(
        "-o", "--output",
        help="Path to save the output JSON file. If not provided, writes <archive>_transcription.json next to the archive."
    )

    args = parser.parse_args()

    # Validate input file
    archive_path = os.path.abspath(args.archive)
    if not os.path.exists(archive_path):
        logger.error(f"Input file not found: {archive_path}")
        sys.exit(1)

    if args.command == "read":
        sys.exit(asyncio.run(run_reader(archive_path)))

    from novamanga.orchestrator import transcribe_archive

    # Determine output path
    if args.output:
        output_path = os.path.abspath(args.output)
    else:
        archive_name = os.path.splitext(os.path.basename(archive_path))[0]
        output_path = os.path.join(os.path.dirname(archive_path), f"{archive_name}_transcription.json")

    # Create output directory if it doesn't exist
    os.makedirs(os.path.dirname(output_path), exist_ok=True)

    try:
        transcribe_archive(archive_path, output_path)
        logger.info(f"Transcription complete. Results saved to {output_path}")
    except Exception as e:
        logger.error(f"Error during transcription: {str(e)}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
