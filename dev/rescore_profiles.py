"""Re-score onboarding answers exported as CSV (one row per user).

Writes the five sub-scores, risk label and strategy archetype next to the
input columns. With --save, the score fields are also written to the
configured profile store (requires a user_id column).
"""

import sys
import argparse
from pathlib import Path

# Add repo root to path for imports
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pandas as pd
from investor_core.batch import classify_signals_frame, score_answers_frame
from investor_core.strategy_resolver import build_store
from investor_core.utils import get_logger, load_config, load_env_once


def rescore(df: pd.DataFrame) -> pd.DataFrame:
    """Input columns plus score and strategy columns (input wins on name clashes)."""
    scores = score_answers_frame(df)
    strategy = classify_signals_frame(df)
    extra = pd.concat([scores, strategy], axis=1)
    extra = extra[[c for c in extra.columns if c not in df.columns]]
    return pd.concat([df, extra], axis=1)


def save_scores(out: pd.DataFrame, cfg: dict) -> int:
    """Persist score_* and risk_profile per user; returns the number of rows written."""
    if "user_id" not in out.columns:
        raise ValueError("--save needs a user_id column")
    store = build_store(cfg)
    cols = ["score_total", "score_tolerance", "score_capacity", "score_behavior",
            "score_horizon", "score_knowledge", "risk_profile"]
    n = 0
    for _, row in out.iterrows():
        if pd.isna(row["user_id"]):
            continue
        values = {c: (row[c] if c == "risk_profile" else int(row[c])) for c in cols}
        store.update(str(row["user_id"]), values)
        n += 1
    return n


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Re-score onboarding answers from a CSV export")
    parser.add_argument("input", help="CSV file with one row of onboarding answers per user")
    parser.add_argument("-o", "--output", help="Output CSV (default: stdout)")
    parser.add_argument("--config", help="Config file (default: config/config.yaml)")
    parser.add_argument("--save", action="store_true",
                        help="Write score fields to the configured profile store")
    args = parser.parse_args()

    load_env_once()
    log = get_logger("rescore_profiles")
    cfg = load_config(args.config)

    try:
        df = pd.read_csv(args.input, dtype=str, keep_default_na=True)
        out = rescore(df)
        if args.output:
            out.to_csv(args.output, index=False)
            log.info("wrote %d rows to %s", len(out), args.output)
        else:
            out.to_csv(sys.stdout, index=False)
        if args.save:
            n = save_scores(out, cfg)
            log.info("saved scores for %d users (%s store)", n, cfg["store"]["backend"])
    except Exception as e:
        print(f"✗ Error: {e}", file=sys.stderr)
        sys.exit(1)
