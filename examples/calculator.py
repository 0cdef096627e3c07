"""A calculator: two operands, their sum, and the average of some samples.

Run it with:

    recompute run examples/calculator.py -s examples/calculator_scenario.toml
"""

from recompute import Computer, Executor

calc = Computer("calc", description="Adds two numbers and averages samples.")
calc.input("x", initial=0.0, value_type=float)
calc.input("y", initial=0.0, value_type=float)
calc.input("samples", initial=[], value_type=list[float], description="Numbers to average.")


@calc.val("sum")
def add(x: float, y: float) -> float:
    """Sum of x and y."""
    return x + y


@calc.val()
def avg(samples: list[float]) -> float:
    """Mean of the samples; fails while there are none."""
    return sum(samples) / len(samples)


@calc.val(depends_on=["sum", "avg"])
def report(snapshot):
    return f"sum={snapshot['sum']:g} avg={snapshot['avg']:g}"


@calc.event()
def reset(snapshot):
    """Set both operands back to zero."""
    return {"x": 0.0, "y": 0.0}


@calc.event()
def add_sample(snapshot, payload):
    """Append a number to the samples."""
    return {"samples": [*snapshot["samples"], payload]}


executor = Executor()
executor.add_computer(calc.build())
