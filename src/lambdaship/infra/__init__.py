"""Control-plane reconciliation stages for lambdaship."""
