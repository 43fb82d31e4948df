from engula_operator.main import main

main()
