from sql_exporter.main import main

main()
