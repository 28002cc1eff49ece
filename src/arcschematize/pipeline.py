"""
Schematization run orchestrator.

Initializes the engine on a network and steps it until one of the run limits
is hit, optionally validating the result against a snapshot of the crossing
order taken before the first step.
"""

from arcschematize.config import load_config
from arcschematize.frechet.frechet import frechet_from_config
from arcschematize.models import EngineState, SchematizationResult
from arcschematize.schematization.engine import IterativeSchematization
from arcschematize.tracer import Diagnostics, configure_tracer, get_tracer, trace
from arcschematize.validate.rules import run_validation, snapshot_cyclic_order


@trace(label="schematize")
def schematize(network, config=None, config_path=None, diagnostics=None, validate=False):
    """
    Simplify a stroke network in place.

    Args:
        network: StrokeNetwork, owned by the engine for the duration of the run
        config: PipelineConfig object (optional)
        config_path: path to YAML config file (optional)
        diagnostics: Diagnostics recorder (optional, built from config otherwise)
        validate: run the validation rules on the result

    Returns:
        SchematizationResult
    """
    tracer = get_tracer()

    if config is None:
        config = load_config(config_path)
    if config.tracing.enabled:
        configure_tracer(
            enabled=True,
            level=config.tracing.level,
            file_path=config.tracing.file_path,
            json_output=config.tracing.json_output,
        )
    if diagnostics is None:
        diagnostics = Diagnostics.from_config(config.diagnostics)

    snapshot = snapshot_cyclic_order(network) if validate else None

    with tracer.span("init", module="pipeline"):
        engine = IterativeSchematization(config.schematization, frechet_from_config(config.frechet), diagnostics)
        engine.init(network)
        complexity_before = engine.get_complexity()

    run = config.run
    steps = 0
    with tracer.span("steps", module="pipeline"):
        while run.max_steps is None or steps < run.max_steps:
            if not engine.step(run.max_complexity, run.max_cost):
                break
            steps += 1

    state = engine.state
    if state == EngineState.STEP_APPLIED:
        # stopped by the step limit; the engine itself can go on
        tracer.event(f"Step limit reached after {steps} steps")

    result = SchematizationResult(
        state=state,
        complexity_before=complexity_before,
        complexity_after=engine.get_complexity(),
        steps=steps,
        max_cost=engine.history.max_cost(),
        history=list(engine.history),
    )

    if validate:
        with tracer.span("validate", module="pipeline"):
            result.validation = run_validation(network, snapshot)

    tracer.event(
        f"Schematization complete: {result.complexity_before} -> {result.complexity_after} arcs "
        f"in {steps} steps ({state.value})"
    )
    return result
