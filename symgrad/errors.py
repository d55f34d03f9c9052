class SymgradError(Exception):
    """ base class for every error raised by symgrad """


class UndefinedVariable(SymgradError, KeyError):
    def __init__(self, name):
        super().__init__(name)
        self.name = name

    def __str__(self):
        return f"no value specified for variable {self.name!r}"


class UnsupportedOperator(SymgradError, ValueError):
    def __init__(self, token):
        super().__init__(token)
        self.token = token

    def __str__(self):
        return f"unsupported operator {self.token!r}"


class UnsupportedFunction(SymgradError, ValueError):
    def __init__(self, token):
        super().__init__(token)
        self.token = token

    def __str__(self):
        return f"unsupported function {self.token!r}"
