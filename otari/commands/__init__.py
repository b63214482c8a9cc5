"""Commands that act on a stack: start, stop, remove and logs."""