from adaptive_assessment.cli.main import main

main()
