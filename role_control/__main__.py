from role_control.cli import run

run()
