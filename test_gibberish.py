import itertools
import random

import pytest

from gibberish import (
    GenerationError,
    GeneratorConfig,
    GibberishGenerator,
    create_generator,
    generate_text,
    load,
    main,
)
from markov_model import EmptySampleError, MarkovModel, analyse
from text_rules import is_alphabet_char

SAMPLE = "the cat sat on the mat. the cat ran."


def constant(value: float):
    return lambda: value


def test_pinned_output_length_policy():
    gen = create_generator(SAMPLE, config=GeneratorConfig(order=2, termination="length"), draw=constant(0.0))
    # " " -> c, "c" -> a, "ca" -> t, "at" -> " ", "t " -> s
    assert gen(5) == "Cat s"


def test_pinned_output_sentence_policy():
    gen = create_generator(SAMPLE, 2, draw=constant(0.999))
    # last entry of every distribution: r a n . " " t h e " " m a t .
    assert gen(5) == "Ran. The mat."


def test_raw_generation_is_not_postprocessed():
    model = analyse(SAMPLE, 2)
    assert generate_text(model, 5, order=2, draw=constant(0.0), termination="length") == "cat s"


def test_each_step_consumes_one_draw():
    model = analyse(SAMPLE, 2)
    calls = itertools.count()

    def draw() -> float:
        next(calls)
        return 0.5

    text = generate_text(model, 40, order=2, draw=draw, termination="length")
    assert len(text) == 40
    assert next(calls) == 40


def test_length_policy_meets_length():
    gen = create_generator(SAMPLE, config=GeneratorConfig(order=3, termination="length", seed=7))
    for length in (0, 1, 17, 200):
        assert len(gen(length)) >= length


def test_sentence_policy_ends_with_full_stop():
    gen = create_generator(SAMPLE, config=GeneratorConfig(order=2, seed=3))
    for length in (1, 30, 120):
        out = gen(length)
        assert len(out) >= length
        assert out.endswith(".")


def test_output_stays_inside_alphabet():
    gen = create_generator(SAMPLE * 3 + " Don't — “quote” me!", config=GeneratorConfig(order=2, seed=11))
    out = gen(300)
    assert all(is_alphabet_char(ch.lower()) for ch in out)


def test_order_zero_generation_uses_unconditional_distribution():
    gen = create_generator("aaaa.", config=GeneratorConfig(order=0, termination="length"), draw=constant(0.0))
    assert gen(3) == "Aaa"


def test_unseeded_and_no_order_zero_policies():
    cfg = GeneratorConfig(order=2, termination="length", include_order_zero=False, space_seed=False)
    gen = create_generator(SAMPLE, config=cfg, draw=constant(0.0))
    # the clamped empty context only knows the opening "t"
    assert gen(3) == "The"


def test_seeded_generators_repeat():
    cfg = GeneratorConfig(order=2, seed=42)
    assert create_generator(SAMPLE, config=cfg)(80) == create_generator(SAMPLE, config=cfg)(80)


def test_generators_share_model_but_not_buffers():
    draws = random.Random(5)
    gen = create_generator(SAMPLE, config=GeneratorConfig(order=2, termination="length"), draw=draws.random)
    first = gen(10)
    second = gen(10)
    assert len(first) == len(second) == 10
    assert gen.model is gen.model


def test_sentence_policy_without_full_stop_fails_early():
    gen = create_generator("no stops here", 2)
    with pytest.raises(GenerationError):
        gen(10)


def test_sentence_policy_overrun_bound():
    cfg = GeneratorConfig(order=2, max_overrun=50)
    # draw 0.0 loops "cat sat sat ..." and never reaches a full stop
    gen = create_generator(SAMPLE, config=cfg, draw=constant(0.0))
    with pytest.raises(GenerationError):
        gen(5)


def test_invalid_configuration_rejected():
    for cfg in (
        GeneratorConfig(order=-1),
        GeneratorConfig(termination="forever"),
        GeneratorConfig(max_overrun=0),
    ):
        with pytest.raises(ValueError):
            create_generator(SAMPLE, config=cfg)


def test_invalid_target_length_rejected():
    gen = create_generator(SAMPLE, config=GeneratorConfig(termination="length", seed=1))
    for bad in (-1, float("inf"), float("nan"), 2.5, None):
        with pytest.raises(ValueError):
            gen(bad)


def test_empty_sample_rejected_before_generation():
    with pytest.raises(EmptySampleError):
        create_generator("   ", 2)


def test_bad_draw_propagates():
    gen = create_generator(SAMPLE, 2, draw=constant(1.5))
    with pytest.raises(ValueError):
        gen(5)


def test_load_reads_sample_file(tmp_path):
    path = tmp_path / "sample.txt"
    path.write_text(SAMPLE, encoding="utf-8")
    gen = load(path, 2, draw=constant(0.999))
    assert gen(5) == "Ran. The mat."
    with pytest.raises(FileNotFoundError):
        load(tmp_path / "missing.txt")


def test_cli_prints_samples(tmp_path, capsys):
    path = tmp_path / "sample.txt"
    path.write_text(SAMPLE, encoding="utf-8")
    main([str(path), "--length", "20", "--count", "2", "--seed", "1", "--stats"])
    out = capsys.readouterr().out
    assert "[Gibberish Markov Model]" in out
    assert "--- Sample 1 ---" in out
    assert "--- Sample 2 ---" in out
    assert "contexts:" in out


def test_cli_missing_file(tmp_path):
    with pytest.raises(SystemExit):
        main([str(tmp_path / "nope.txt")])


def test_cli_reports_sample_errors(tmp_path):
    path = tmp_path / "empty.txt"
    path.write_text("@@@", encoding="utf-8")
    with pytest.raises(SystemExit):
        main([str(path)])


def test_generator_exposes_its_model_and_config():
    cfg = GeneratorConfig(order=3, termination="length", seed=2)
    gen = create_generator(SAMPLE, config=cfg)
    assert isinstance(gen, GibberishGenerator)
    assert isinstance(gen.model, MarkovModel)
    assert gen.model.max_order == 3
    assert gen.config is cfg


def test_order_must_agree_with_config():
    with pytest.raises(ValueError):
        create_generator(SAMPLE, 5, config=GeneratorConfig(order=2))
    gen = create_generator(SAMPLE, 2, config=GeneratorConfig(order=2, termination="length"), draw=constant(0.0))
    assert gen(5) == "Cat s"


def test_load_applies_order_checks(tmp_path):
    path = tmp_path / "sample.txt"
    path.write_text(SAMPLE, encoding="utf-8")
    with pytest.raises(ValueError):
        load(path, 5, config=GeneratorConfig())
    assert load(path, 3).model.max_order == 3
