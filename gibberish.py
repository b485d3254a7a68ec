from __future__ import annotations

import argparse
import math
import pathlib
import random
from dataclasses import dataclass
from typing import Callable, Optional

from markov_model import MarkovError, MarkovModel, analyse
from text_rules import postprocess

DrawFn = Callable[[], float]

TERMINATIONS = ("sentence", "length")
SENTENCE_END = "."


class GenerationError(MarkovError, RuntimeError):
    """Generation could not reach its termination condition."""


@dataclass
class GeneratorConfig:
    order: int = 2
    termination: str = "sentence"  # "sentence" or "length"
    include_order_zero: bool = True
    space_seed: bool = True  # empty buffer looks up " " instead of ""
    max_overrun: int = 10_000  # extra chars allowed while waiting for a sentence end
    seed: Optional[int] = None

    def validate(self) -> None:
        if isinstance(self.order, bool) or not isinstance(self.order, int) or self.order < 0:
            raise ValueError(f"order must be a non-negative integer, got {self.order!r}")
        if self.termination not in TERMINATIONS:
            raise ValueError(f"termination must be one of {TERMINATIONS}, got {self.termination!r}")
        if not isinstance(self.max_overrun, int) or self.max_overrun <= 0:
            raise ValueError(f"max_overrun must be a positive integer, got {self.max_overrun!r}")


def _check_length(target_length: int) -> None:
    if isinstance(target_length, float) and not math.isfinite(target_length):
        raise ValueError(f"target length must be finite, got {target_length!r}")
    if isinstance(target_length, bool) or not isinstance(target_length, int) or target_length < 0:
        raise ValueError(f"target length must be a non-negative integer, got {target_length!r}")


def generate_text(
    model: MarkovModel,
    target_length: int,
    *,
    order: int,
    draw: DrawFn,
    termination: str = "sentence",
    max_overrun: int = 10_000,
) -> str:
    """Run the generation loop and return the raw (not postprocessed) text.

    Each step feeds the last `order` characters to the model and consumes
    exactly one draw. Under the sentence policy the loop keeps going past
    `target_length` until the text ends with a full stop.
    """
    _check_length(target_length)
    if termination not in TERMINATIONS:
        raise ValueError(f"termination must be one of {TERMINATIONS}, got {termination!r}")
    need_sentence = termination == "sentence"
    if need_sentence and SENTENCE_END not in model.alphabet():
        raise GenerationError(f"sample never produces {SENTENCE_END!r}, sentence termination cannot succeed")

    limit = target_length + max_overrun
    chars = []
    while len(chars) < target_length or (need_sentence and (not chars or chars[-1] != SENTENCE_END)):
        if len(chars) >= limit:
            raise GenerationError(f"no sentence end within {max_overrun} characters past length {target_length}")
        context = "".join(chars[-order:]) if order > 0 else ""
        chars.append(model.predict(context, draw()))
    return "".join(chars)


@dataclass
class GibberishGenerator:
    """A trained model bound to a generation config and a draw source.

    Calling it with a target length returns postprocessed text. Every call
    gets its own buffer; the model is shared and never modified.
    """

    model: MarkovModel
    config: GeneratorConfig
    draw: DrawFn

    def __call__(self, target_length: int) -> str:
        text = generate_text(
            self.model,
            target_length,
            order=self.config.order,
            draw=self.draw,
            termination=self.config.termination,
            max_overrun=self.config.max_overrun,
        )
        return postprocess(text)


def create_generator(
    sample: str,
    order: Optional[int] = None,
    *,
    config: Optional[GeneratorConfig] = None,
    draw: Optional[DrawFn] = None,
) -> GibberishGenerator:
    """Train on `sample` once and return a `generate(target_length) -> str` callable.

    `order` defaults to 2. When a config is given, `order` may be omitted or
    must agree with `config.order`.
    """
    if config is None:
        config = GeneratorConfig(order=2 if order is None else order)
    elif order is not None and order != config.order:
        raise ValueError(f"order {order!r} conflicts with config.order {config.order!r}")
    config.validate()
    model = analyse(
        sample,
        config.order,
        include_order_zero=config.include_order_zero,
        empty_seed=" " if config.space_seed else "",
    )
    if draw is None:
        draw = random.Random(config.seed).random
    return GibberishGenerator(model=model, config=config, draw=draw)


def load(path: str | pathlib.Path, order: Optional[int] = None, **kwargs) -> GibberishGenerator:
    """Read a UTF-8 sample file and build a generator from it."""
    sample_path = pathlib.Path(path)
    if not sample_path.exists():
        raise FileNotFoundError(f"Sample not found: {sample_path}")
    return create_generator(sample_path.read_text(encoding="utf-8"), order, **kwargs)


def main(argv: Optional[list[str]] = None) -> None:
    p = argparse.ArgumentParser(description="Generate gibberish that mimics a sample text.")
    p.add_argument("sample", type=str)
    p.add_argument("--order", type=int, default=2)
    p.add_argument("--length", type=int, default=200)
    p.add_argument("--count", type=int, default=3)
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--termination", choices=TERMINATIONS, default="sentence")
    p.add_argument("--no-order-zero", action="store_true")
    p.add_argument("--no-space-seed", action="store_true")
    p.add_argument("--max-overrun", type=int, default=10_000)
    p.add_argument("--stats", action="store_true", help="show model statistics before sampling")
    args = p.parse_args(argv)

    cfg = GeneratorConfig(
        order=args.order,
        termination=args.termination,
        include_order_zero=not args.no_order_zero,
        space_seed=not args.no_space_seed,
        max_overrun=args.max_overrun,
        seed=args.seed,
    )

    sample_path = pathlib.Path(args.sample)
    if not sample_path.exists():
        raise SystemExit(f"{sample_path} not found.")
    text = sample_path.read_text(encoding="utf-8")

    try:
        cfg.validate()
        model = analyse(
            text,
            cfg.order,
            include_order_zero=cfg.include_order_zero,
            empty_seed=" " if cfg.space_seed else "",
            progress=args.stats,
        )
    except ValueError as exc:
        raise SystemExit(f"error: {exc}") from exc

    print("[Gibberish Markov Model]")
    print(f"Sample length (chars): {len(text):,}")
    print(f"Order: {cfg.order}, termination: {cfg.termination}")
    if args.stats:
        for key, value in model.stats().items():
            print(f"  {key}: {value:,}" if isinstance(value, int) else f"  {key}: {value:.2f}")
        top = sorted(model.distribution("").items(), key=lambda kv: kv[1], reverse=True)[:10]
        print("Top-10 characters (char, count):", top)

    rng = random.Random(cfg.seed)
    print()
    for i in range(args.count):
        try:
            raw = generate_text(
                model,
                args.length,
                order=cfg.order,
                draw=rng.random,
                termination=cfg.termination,
                max_overrun=cfg.max_overrun,
            )
        except (GenerationError, ValueError) as exc:
            raise SystemExit(f"error: {exc}") from exc
        print(f"--- Sample {i+1} ---")
        print(postprocess(raw))
        print()


if __name__ == "__main__":
    main()
