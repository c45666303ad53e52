from klinestream.main import run

run()
