from texmake.ui.cli import main


main()
