# motionbridge - Core services
# Pure rule compilation, validation and evaluation; no I/O
