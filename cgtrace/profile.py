from dataclasses import dataclass, field


@dataclass
class Call:
    """Describes the calls from one function to another, aggregated."""

    callee_id: str
    calls: int = 0
    cost: int = 0  # nanoseconds


@dataclass
class Function:
    """Describes a function found in the profile."""

    id: str
    name: str
    module: str | None = None
    file: str | None = None
    line_number: int = 0
    called: int = 0
    cost: int = 0  # self cost, nanoseconds
    calls: dict[str, Call] = field(default_factory=dict)

    def add_call(self, callee_id, calls, cost):
        """Records `calls` invocations of `callee_id` costing `cost`.

        Repeated calls to the same callee accumulate into a single edge.
        """
        call = self.calls.get(callee_id)
        if call is None:
            call = Call(callee_id)
            self.calls[callee_id] = call
        call.calls += calls
        call.cost += cost
        return call

    def outgoing(self):
        """Returns the outgoing calls, in the order they were first seen."""
        return list(self.calls.values())


@dataclass
class Profile:
    """Describes a call graph with aggregated costs."""

    functions: dict[str, Function] = field(default_factory=dict)
    creator: str | None = None
    command: str | None = None
    total_cost: int = 0  # nanoseconds

    def function(self, id):
        """Returns the function with the given id, or None."""
        return self.functions.get(id)

    def get_or_add_function(self, id, name, module=None, file=None):
        """Returns the function with the given id, creating it if needed."""
        fn = self.functions.get(id)
        if fn is None:
            fn = Function(id=id, name=name, module=module, file=file)
            self.functions[id] = fn
        return fn

    def roots(self):
        """Returns the functions that are never called, in insertion order."""
        return [fn for fn in self.functions.values() if fn.called == 0]

    def incoming_cost(self, id):
        """Returns the summed cost of all calls made to the function `id`."""
        return sum(
            call.cost
            for fn in self.functions.values()
            for call in fn.calls.values()
            if call.callee_id == id
        )
