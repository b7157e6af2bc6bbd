import os
from datetime import datetime

verbose_log = int(os.getenv("VERBOSE_LOG", "0"))
verbose_print = int(os.getenv("VERBOSE_PRINT", "0"))
log_file = os.getenv("LOG_FILE", "log.txt")

def log(message, level=2):
    now = datetime.now()
    current_time = now.strftime("%m/%d/%Y %H:%M:%S")

    if verbose_log >= level:
        with open(log_file, 'a') as f:
            f.write("{} | {}".format(current_time, message) + "\n")
    if verbose_print >= level:
        print("LOG:", current_time, message)
