"""
Batch Star Rating Script.
Rates every chart JSON file under DATA_ROOT/charts and exports the
fingerprints (scalars only) to a CSV file.

Usage:
    python -m scripts.batch_star_ratings [clock_rate]
"""

import glob
import json
import os
import sys

import pandas as pd
from loguru import logger
from tqdm import tqdm

from config import settings
from src.difficulty.core import Chart
from src.difficulty.models import Mods
from src.difficulty.pipeline import ChartDifficultyCalculator

# 리스트형 곡선은 CSV 에서 제외
SCALAR_COLUMNS = [
    "star_rating",
    "aim_difficulty",
    "tap_difficulty",
    "finger_control_difficulty",
    "mashed_tap_difficulty",
    "aim_hidden_factor",
    "stream_note_count",
    "cheese_note_count",
    "approach_rate",
    "overall_difficulty",
    "max_combo",
    "length_s",
    "object_count",
]


def load_charts(chart_dir):
    """차트 디렉토리에서 JSON 파일 목록 로드"""
    paths = sorted(glob.glob(os.path.join(chart_dir, "*.json")))
    if not paths:
        raise FileNotFoundError(f"No chart JSON files in '{chart_dir}'")
    return paths


def rate_chart(calculator, path, mods):
    with open(path, encoding="utf-8") as f:
        chart = Chart.from_dict(json.load(f))
    fingerprint = calculator.calculate(chart, mods)
    row = fingerprint.model_dump(include=set(SCALAR_COLUMNS))
    row["chart"] = os.path.basename(path)
    return row


def main(clock_rate=1.0):
    logger.add(os.path.join(settings.LOG_DIR, "batch_star_ratings.log"), level=settings.LOG_LEVEL)

    chart_dir = os.path.join(settings.DATA_ROOT, "charts")
    try:
        paths = load_charts(chart_dir)
    except FileNotFoundError as e:
        logger.error(str(e))
        return

    logger.info(f"Found {len(paths)} charts. Starting batch rating at x{clock_rate}...")

    calculator = ChartDifficultyCalculator()
    mods = Mods(clock_rate=clock_rate)
    rows = []

    for path in tqdm(paths, desc="Rating charts"):
        try:
            rows.append(rate_chart(calculator, path, mods))
        except (KeyError, ValueError, json.JSONDecodeError) as e:
            logger.error(f"Skipping {path}: {e}")

    if not rows:
        logger.warning("No chart could be rated.")
        return

    df = pd.DataFrame(rows)[["chart"] + SCALAR_COLUMNS].sort_values("star_rating", ascending=False)
    out_path = os.path.join(settings.DATA_ROOT, f"star_ratings_x{clock_rate}.csv")
    df.to_csv(out_path, index=False)
    logger.info(f"[Done] Saved {len(df)} ratings to {out_path}")


if __name__ == "__main__":
    main(float(sys.argv[1]) if len(sys.argv) > 1 else 1.0)
