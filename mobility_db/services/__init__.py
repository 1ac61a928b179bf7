"""Query and maintenance services over the research tables."""
