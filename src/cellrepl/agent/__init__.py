"""The evaluation agent

Runs in the target platform's interpreter, so it must only use the standard
library.

"""
