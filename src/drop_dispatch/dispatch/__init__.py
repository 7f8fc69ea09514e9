"""Resolution, merge, and supervision engine for drop-folder jobs.

One dispatch pass walks the configured drop folders, turns every input file
into a positional argument list for the worker its folder is mapped to,
launches the worker as an independent process, and inspects each launched
job exactly once after a settle delay.  The only thing decided here is whether
the worker was *invoked* correctly (all mandatory parameters present, every
value bindable).  What the worker does afterwards, including its exit status
and duration, belongs to the worker.
"""
