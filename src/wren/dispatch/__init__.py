"""Request dispatch: binding, execution, results, and error translation."""
