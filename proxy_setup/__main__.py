from proxy_setup.cli import run

run()
