from glove_engine.cli import main

main()
