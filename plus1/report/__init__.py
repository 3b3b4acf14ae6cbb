"""Run reports and the collaborators that receive them."""
