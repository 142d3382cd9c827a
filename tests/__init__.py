import os

# Tests initialize their own databases; skip the background startup task
os.environ.setdefault('PORTAL_AUTO_INIT', '0')
