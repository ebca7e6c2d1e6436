"""
Spectrum Property Prediction - All-in-One Script

Trains property models (e.g. carbon number, vapor pressure) from a labelled
corpus of mass spectra and predicts the same properties for unknown spectra,
using one fixed feature space for both.

Usage:
    python run.py train.csv unknown.csv --result_path results/
    python run.py train.csv unknown.csv --targets C OSc -j 4

Directory Structure:
  project/
  ├── run.py                  # This script
  └── code/                   # Step modules (property_pipeline.py, property_train.py, ...)
"""

import subprocess
import sys
from pathlib import Path


PIPELINE_SCRIPT = Path(__file__).resolve().parent / "code" / "property_pipeline.py"


def main():
    print("\n")
    print("  Welcome to SPECPROP")
    print("  peaks + neutral losses -> properties")
    print("")

    if not PIPELINE_SCRIPT.exists():
        print(f"✗ Error: Script not found: {PIPELINE_SCRIPT}")
        sys.exit(1)

    # all arguments are forwarded; property_pipeline.py parses them
    cmd = [sys.executable, str(PIPELINE_SCRIPT)] + sys.argv[1:]
    try:
        result = subprocess.run(cmd, text=True)
    except KeyboardInterrupt:
        print("\n\n✗ Pipeline interrupted by user")
        sys.exit(1)
    sys.exit(result.returncode)


if __name__ == "__main__":
    main()
