# main.py
import sys
import logging
from pathlib import Path
from typing import Dict

from segmenter.ConfigLoader import load_config
from segmenter.LoggingSetup import setup_logging
from segmenter.asr.ModelManager import ModelManager


USAGE = """Usage: python main.py [options]

Options:
  -v                    Verbose (DEBUG) logging
  --input-file=PATH     Segment a 16 kHz WAV file instead of the microphone
  --fast                Feed the input file as fast as possible
  --device=ID           sounddevice input device index or name
  --config=PATH         Configuration file (default: config/segmenter_config.json)
  --download            Download missing models and exit
"""


def resolve_paths(script_path: Path) -> Dict[str, Path]:
    """
    Resolves application paths relative to the project directory.

        project/
        ├── main.py
        ├── segmenter/
        ├── config/     # CONFIG_DIR
        ├── models/     # MODELS_DIR
        └── logs/       # LOGS_DIR

    Args:
        script_path: Path to main script

    Returns:
        Dictionary with resolved paths
    """
    project_dir = script_path.resolve().parent

    return {
        "APP_DIR": project_dir,
        "MODELS_DIR": project_dir / "models",
        "CONFIG_DIR": project_dir / "config",
        "LOGS_DIR": project_dir / "logs",
    }


def report_download_progress(model_name: str, progress: float, status: str) -> None:
    logging.info(f"{model_name}: {status} ({progress:.0%})")


def parse_args(argv: list) -> Dict[str, object]:
    args: Dict[str, object] = {
        'verbose': "-v" in argv,
        'download': "--download" in argv,
        'realtime': "--fast" not in argv,
        'input_file': None,
        'config': None,
        'device': None,
    }

    for arg in argv:
        if arg.startswith("--input-file="):
            args['input_file'] = arg.split("=", 1)[1]
        elif arg.startswith("--config="):
            args['config'] = arg.split("=", 1)[1]
        elif arg.startswith("--device="):
            device = arg.split("=", 1)[1]
            args['device'] = int(device) if device.isdigit() else device
        elif arg in ("-h", "--help"):
            args['help'] = True

    return args


PATHS = resolve_paths(Path(__file__))


if __name__ == "__main__":
    args = parse_args(sys.argv[1:])
    if args.get('help'):
        print(USAGE)
        sys.exit(0)

    try:
        config_path = args['config'] or str(PATHS["CONFIG_DIR"] / "segmenter_config.json")
        config = load_config(config_path)
        setup_logging(PATHS["LOGS_DIR"], config['logging'], verbose=args['verbose'])

        PATHS["MODELS_DIR"].mkdir(parents=True, exist_ok=True)
        model_manager = ModelManager(config, PATHS["MODELS_DIR"])
        missing_models = model_manager.get_missing_models()

        if args['download'] or missing_models:
            if missing_models:
                logging.info(f"Downloading missing models: {', '.join(missing_models)}")
            if not model_manager.download_models(report_download_progress):
                logging.error("Model download failed. Exiting.")
                sys.exit(1)
            if args['download']:
                sys.exit(0)

        # Import pipeline only after models are confirmed present
        from segmenter.pipeline import SegmentationPipeline
        from segmenter.TranscriptPrinter import TranscriptPrinter

        pipeline = SegmentationPipeline(
            config_path=config_path,
            models_dir=PATHS["MODELS_DIR"],
            input_file=args['input_file'],
            realtime=args['realtime'],
            device=args['device'],
            verbose=args['verbose']
        )
        printer = TranscriptPrinter(show_status=args['verbose'])
        pipeline.publisher.subscribe(printer)

        pipeline.run()

        logging.info(f"Transcript: {printer.transcript()}")

    except KeyboardInterrupt:
        logging.info("Interrupted by user.")
        sys.exit(0)
    except Exception as e:
        logging.error(f"ERROR: {type(e).__name__}: {e}")
        import traceback
        logging.error(traceback.format_exc())
        sys.exit(1)
