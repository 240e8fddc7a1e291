#!/usr/bin/env python3
"""Download the optional CAM++ speaker embedding model from Hugging Face.

Only needed when VOICEFACTOR_ENGINE_EXTRACTOR=campp. The default spectral
extractor has no model files.
"""

import argparse
import sys
from pathlib import Path

from huggingface_hub import hf_hub_download
from huggingface_hub.utils import HfHubHTTPError

MODELS = [
    {
        "repo_id": "csukuangfj/speaker-embedding-models",
        "files": ["3dspeaker_speech_campplus_sv_en_voxceleb_16k.onnx"],
        "description": "CAM++ Speaker Embedding",
    },
]


def download_model(repo_id: str, filename: str, local_dir: Path, force: bool) -> Path:
    """Download a single model file from Hugging Face Hub.

    Args:
        repo_id: Hugging Face repository ID
        filename: Name of the file to download
        local_dir: Local directory to save the file
        force: Download even if the file already exists

    Returns:
        Path to the downloaded file
    """
    target_path = local_dir / filename

    if target_path.exists() and not force:
        print(f"  [SKIP] {filename} already exists")
        return target_path

    print(f"  [DOWNLOAD] {filename}...")
    downloaded_path = hf_hub_download(
        repo_id=repo_id,
        filename=filename,
        local_dir=local_dir,
        force_download=force,
    )
    print(f"  [OK] {filename}")
    return Path(downloaded_path)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Download voicefactor models from Hugging Face"
    )
    parser.add_argument(
        "--models-dir",
        type=Path,
        default=Path("./models"),
        help="Directory to save models (default: ./models)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Force re-download even if files exist",
    )
    args = parser.parse_args()

    models_dir: Path = args.models_dir.resolve()
    models_dir.mkdir(parents=True, exist_ok=True)

    print("=== voicefactor Model Downloader ===")
    print(f"Target directory: {models_dir}")
    print()

    failed = []
    for model in MODELS:
        print(f"[{model['description']}]")
        for filename in model["files"]:
            try:
                download_model(model["repo_id"], filename, models_dir, args.force)
            except HfHubHTTPError as e:
                print(f"  [ERROR] Failed to download {filename}: {e}")
                failed.append(f"{model['description']}/{filename}")
        print()

    if failed:
        print(f"Failed downloads: {', '.join(failed)}")
        return 1

    for f in models_dir.glob("*.onnx"):
        size_mb = f.stat().st_size / (1024 * 1024)
        print(f"  {f.name}: {size_mb:.1f} MB")
    return 0


if __name__ == "__main__":
    sys.exit(main())
