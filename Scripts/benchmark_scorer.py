from __future__ import annotations

import argparse
import logging
import statistics
import time
from dataclasses import dataclass
from typing import List

import cv2
import numpy as np

from yolo_scorer import Detection, load_model_config, load_scorer, suppress, yolo_coco_p5
from yolo_scorer.types import YoloLabel

try:
    from tqdm import tqdm  # type: ignore
except Exception:  # pragma: no cover
    tqdm = None


@dataclass(frozen=True)
class TimingSummary:
    n: int
    mean_ms: float
    p50_ms: float
    p90_ms: float
    p95_ms: float


def _percentile(sorted_values: List[float], q: float) -> float:
    if not sorted_values:
        raise ValueError("No values provided.")
    if q < 0.0 or q > 100.0:
        raise ValueError("q must be in [0, 100].")
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    # Linear interpolation between closest ranks.
    pos = (q / 100.0) * (len(sorted_values) - 1)
    lo = int(np.floor(pos))
    hi = int(np.ceil(pos))
    if lo == hi:
        return float(sorted_values[lo])
    t = pos - lo
    return float(sorted_values[lo] * (1.0 - t) + sorted_values[hi] * t)


def _summarize_ms(values_s: List[float]) -> TimingSummary:
    ms = sorted(v * 1000.0 for v in values_s)
    return TimingSummary(
        n=len(ms),
        mean_ms=float(statistics.fmean(ms)) if ms else 0.0,
        p50_ms=_percentile(ms, 50.0) if ms else 0.0,
        p90_ms=_percentile(ms, 90.0) if ms else 0.0,
        p95_ms=_percentile(ms, 95.0) if ms else 0.0,
    )


def _format_summary(label: str, s: TimingSummary) -> str:
    return (
        f"{label}: n={s.n} mean={s.mean_ms:.3f}ms p50={s.p50_ms:.3f}ms "
        f"p90={s.p90_ms:.3f}ms p95={s.p95_ms:.3f}ms"
    )


def _progress(iterable, total: int):
    return tqdm(iterable, total=total, unit="it") if tqdm is not None else iterable


def _synthetic_detections(n: int, seed: int = 0) -> List[Detection]:
    rng = np.random.default_rng(seed)
    label = YoloLabel(id=0, name="synthetic")
    x1y1 = rng.uniform(0, 600, size=(n, 2))
    wh = rng.uniform(5, 80, size=(n, 2))
    scores = rng.uniform(0.25, 1.0, size=n)
    return [
        Detection(label=label, score=float(s), x1=float(x), y1=float(y), x2=float(x + w), y2=float(y + h))
        for (x, y), (w, h), s in zip(x1y1, wh, scores)
    ]


def bench_suppression(n: int, repeats: int, overlap: float) -> None:
    dets = _synthetic_detections(n)
    for mode in ("pairwise", "greedy"):
        times: List[float] = []
        kept = 0
        for _ in _progress(range(repeats), repeats):
            t0 = time.perf_counter()
            kept = len(suppress(dets, overlap, mode=mode))
            times.append(time.perf_counter() - t0)
        print(_format_summary(f"suppress_{mode}", _summarize_ms(times)) + f" kept={kept}/{n}")


def bench_model(args: argparse.Namespace) -> None:
    img = cv2.imread(args.image)
    if img is None:
        raise FileNotFoundError(f"Could not read image at path: {args.image}")

    config = load_model_config(args.config) if args.config else yolo_coco_p5()
    t_pre: List[float] = []
    t_inf: List[float] = []
    t_post: List[float] = []

    with load_scorer(args.model, config, backend=args.backend, root=".") as scorer:
        for i in _progress(range(args.warmup + args.repeats), args.warmup + args.repeats):
            t0 = time.perf_counter()
            prep = scorer.preprocess(img)
            t1 = time.perf_counter()
            outputs = scorer.infer(prep.blob)
            t2 = time.perf_counter()
            candidates = scorer.decoder.decode(outputs, orig_size=prep.orig_size, pad=prep.pad, ratio=prep.ratio)
            suppress(candidates, config.overlap, mode=config.nms_mode)
            t3 = time.perf_counter()
            if i < args.warmup:
                continue
            t_pre.append(t1 - t0)
            t_inf.append(t2 - t1)
            t_post.append(t3 - t2)

    print(_format_summary("preprocess", _summarize_ms(t_pre)))
    print(_format_summary("inference", _summarize_ms(t_inf)))
    print(_format_summary("decode+suppress", _summarize_ms(t_post)))


def main() -> int:
    parser = argparse.ArgumentParser(description="Benchmark scorer stages, or suppression alone on synthetic boxes.")
    src = parser.add_mutually_exclusive_group(required=True)
    src.add_argument("--image", default=None, help="Path to an input image (needs --model).")
    src.add_argument("--synthetic-boxes", type=int, default=None, help="Benchmark suppression on N random boxes.")

    parser.add_argument("--model", default=None, help="Path to a YOLOv5 model (.onnx / .torchscript).")
    parser.add_argument("--config", default=None, help="Model config JSON (default: COCO P5).")
    parser.add_argument("--backend", default=None, help="Force backend: onnxruntime / torchscript.")
    parser.add_argument("--overlap", type=float, default=0.45, help="IoU threshold for synthetic suppression.")
    parser.add_argument("--warmup", type=int, default=5, help="Warmup runs not recorded.")
    parser.add_argument("--repeats", type=int, default=50, help="Recorded runs.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.WARNING)

    if args.repeats < 1:
        raise ValueError("--repeats must be >= 1")
    if args.warmup < 0:
        raise ValueError("--warmup must be >= 0")

    if args.synthetic_boxes is not None:
        if args.synthetic_boxes < 1:
            raise ValueError("--synthetic-boxes must be >= 1")
        bench_suppression(args.synthetic_boxes, args.repeats, args.overlap)
        return 0

    if not args.model:
        parser.error("--image requires --model")
    bench_model(args)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
